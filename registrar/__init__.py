"""
Registrar: academic records management core.

Users, student and teacher accounts, courses, enrollments and departments
behind one uniform query protocol, with role-based authorization and
derived-state maintenance (cgpa, graduation eligibility, account
provisioning).
"""

__version__ = "1.0.0"
__author__ = "Registrar Development Team"
__description__ = "Academic records query layer and consistency engine"
