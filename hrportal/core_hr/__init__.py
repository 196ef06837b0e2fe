"""Core HR module — Branch, Department, Designation, Employee models, schemas and services."""

from hrportal.core_hr.models import Branch, Department, Designation, Employee

__all__ = ["Branch", "Department", "Designation", "Employee"]
