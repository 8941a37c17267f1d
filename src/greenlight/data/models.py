"""Aggregate of every record store, bound to one pool and one deadline."""

from __future__ import annotations

from dataclasses import dataclass

import asyncpg

from greenlight.data import DEFAULT_TIMEOUT_S
from greenlight.data.movies import MovieModel
from greenlight.data.permissions import PermissionModel


@dataclass
class Models:
    movies: MovieModel
    permissions: PermissionModel

    @classmethod
    def from_pool(cls, pool: asyncpg.Pool, timeout: float = DEFAULT_TIMEOUT_S) -> Models:
        return cls(
            movies=MovieModel(pool, timeout=timeout),
            permissions=PermissionModel(pool, timeout=timeout),
        )
