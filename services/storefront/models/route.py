"""
MatchedRoute model.

Result of route resolution against routing.yml and the built-in routes.
"""

from typing import Dict

from pydantic import BaseModel, Field


class MatchedRoute(BaseModel):
    """
    Route information resolved for a request path.
    """

    name: str
    route_path: str
    path_params: Dict[str, str] = Field(default_factory=dict)
    allow_in_maintenance: bool = False
