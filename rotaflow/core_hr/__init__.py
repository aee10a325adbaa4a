"""Core HR module — Location, Employee and tenant settings models and lookups."""

from rotaflow.core_hr.models import Employee, Location, ManagerLocation, TenantSettings

__all__ = ["Employee", "Location", "ManagerLocation", "TenantSettings"]
