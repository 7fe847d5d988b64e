"""Staff identity schemas"""

from typing import Optional

from pydantic import BaseModel


class StaffIdentity(BaseModel):
    """Claims of a verified staff bearer token"""
    sub: str
    name: Optional[str] = None
    role: str = "staff"

    @property
    def display_name(self) -> str:
        return self.name or self.sub
