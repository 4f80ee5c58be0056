"""Authorization checks consumed by the ordering layer.

A guard answers one question: may ``actor`` mutate the records grouped under
``parent_key``? Project membership decides: the project's creator, or any
member of a team linked to the project.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class AccessGuard(Protocol):
    def can_mutate(self, actor: Optional[str], parent_key: str) -> bool: ...


_MEMBERSHIP_BY_PROJECT = """
    SELECT 1
    FROM projects p
    WHERE p.id = :project_id
      AND (
        p.created_by = :actor
        OR EXISTS (
          SELECT 1
          FROM project_teams pt
          JOIN team_members tm ON tm.team_id = pt.team_id
          WHERE pt.project_id = p.id AND tm.user_id = :actor
        )
      )
    LIMIT 1
"""

_PROJECT_OF_COLUMN = "SELECT project_id FROM kanban_columns WHERE id = :column_id"


class ProjectMembershipGuard:
    """Membership check for groups keyed by project id or by column id."""

    SCOPES = ("project", "column")

    def __init__(self, engine: Engine, scope: str = "column") -> None:
        if scope not in self.SCOPES:
            raise ValueError(f"scope must be one of {self.SCOPES}")
        self.engine = engine
        self.scope = scope

    def can_mutate(self, actor: Optional[str], parent_key: str) -> bool:
        if not actor:
            return False
        with self.engine.connect() as conn:
            project_id: Optional[str] = parent_key
            if self.scope == "column":
                row = conn.execute(sql_text(_PROJECT_OF_COLUMN), {"column_id": parent_key}).fetchone()
                project_id = str(row[0]) if row is not None else None
            if project_id is None:
                return False
            allowed = conn.execute(
                sql_text(_MEMBERSHIP_BY_PROJECT),
                {"project_id": project_id, "actor": actor},
            ).fetchone()
        if allowed is None:
            logger.info("access_denied actor=%s scope=%s key=%s", actor, self.scope, parent_key)
            return False
        return True


class AllowAllGuard:
    """Grants every request; for internal maintenance flows only."""

    def can_mutate(self, actor: Optional[str], parent_key: str) -> bool:
        return True


__all__ = ["AccessGuard", "ProjectMembershipGuard", "AllowAllGuard"]
