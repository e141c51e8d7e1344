"""
Employee model mirrored from Gripp.

Rows are replaced wholesale by the sync orchestrator. Identity is the Gripp
employee id; the active flag follows whatever Gripp reports on the last sync.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class Employee(SQLModel, table=True):
    """
    Employee table, populated from `employee.get`.
    """

    __tablename__ = "employees"

    id: int = Field(primary_key=True, description="Employee ID from Gripp")
    firstname: str = Field(max_length=255, description="Employee first name")
    lastname: str = Field(max_length=255, description="Employee last name")
    email: Optional[str] = Field(default=None, max_length=255)
    function: Optional[str] = Field(
        default=None, max_length=255, description="Function title"
    )
    department_id: Optional[int] = Field(default=None)
    department_name: Optional[str] = Field(default=None, max_length=255)
    active: bool = Field(default=True, index=True)

    synced_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
        description="Last synced from Gripp",
    )

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()

    class Config:
        json_schema_extra = {
            "example": {
                "id": 12,
                "firstname": "Anna",
                "lastname": "de Vries",
                "email": "anna@company.nl",
                "function": "Developer",
                "department_id": 3,
                "department_name": "Development",
                "active": True,
            }
        }

