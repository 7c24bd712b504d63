from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import sqlalchemy as sa
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class Recipient:
    email: str
    name: str
    user_id: int


def _user_tables(prefix: str) -> tuple[sa.TableClause, sa.TableClause]:
    users = sa.table(
        f"{prefix}users",
        sa.column("ID", sa.BigInteger),
        sa.column("user_email", sa.String),
        sa.column("display_name", sa.String),
        sa.column("user_login", sa.String),
    )
    usermeta = sa.table(
        f"{prefix}usermeta",
        sa.column("user_id", sa.BigInteger),
        sa.column("meta_key", sa.String),
        sa.column("meta_value", sa.Text),
    )
    return users, usermeta


class WordPressUserDirectory:
    """Reads notification recipients straight from the WordPress user tables."""

    def __init__(self, engine: Engine, table_prefix: str = "wp_") -> None:
        self._engine = engine
        self._prefix = table_prefix

    def find_by_roles(self, roles: Iterable[str]) -> list[Recipient]:
        wanted = [role for role in dict.fromkeys(roles) if role]
        if not wanted:
            return []
        users, usermeta = _user_tables(self._prefix)
        capabilities = usermeta.c.meta_value
        query = (
            sa.select(users.c.ID, users.c.user_email, users.c.display_name, users.c.user_login)
            .distinct()
            .select_from(
                users.join(
                    usermeta,
                    sa.and_(
                        users.c.ID == usermeta.c.user_id,
                        usermeta.c.meta_key == f"{self._prefix}capabilities",
                    ),
                )
            )
            .where(users.c.user_email.is_not(None), users.c.user_email != "")
            .where(sa.or_(*(capabilities.like(f'%"{role}"%') for role in wanted)))
            .order_by(users.c.display_name.asc())
        )
        with self._engine.connect() as connection:
            rows = connection.execute(query).all()
        return [
            Recipient(email=row.user_email, name=row.display_name or row.user_login, user_id=int(row.ID))
            for row in rows
        ]


def filter_allowed_domains(recipients: Iterable[Recipient], domains: Iterable[str]) -> list[Recipient]:
    allowed = {domain.lower() for domain in domains}
    seen: set[str] = set()
    result: list[Recipient] = []
    for recipient in recipients:
        email = recipient.email.strip()
        if email.count("@") != 1:
            continue
        domain = email.rsplit("@", 1)[1].lower()
        key = email.lower()
        if domain not in allowed or key in seen:
            continue
        seen.add(key)
        result.append(recipient)
    return result


__all__ = ["Recipient", "WordPressUserDirectory", "filter_allowed_domains"]
