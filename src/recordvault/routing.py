"""Partition routing.

Maps record ids to shards. Each ``ShardMapping`` is an immutable, versioned
function of the id, so a migration can route with two versions side by side
(dual-write / dual-read) while the router itself never changes in place.
"""

import hashlib
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

from .errors import ConfigurationError
from .interfaces import ShardAssignment

Strategy = Literal["modulo", "jump"]

_MASK_64 = 0xFFFFFFFFFFFFFFFF


def _digest64(record_id: str) -> int:
    return int.from_bytes(
        hashlib.blake2b(record_id.encode("utf-8"), digest_size=8).digest(), "big"
    )


def jump_hash(key: int, num_buckets: int) -> int:
    """Jump consistent hash (Lamping & Veach).

    Growing ``num_buckets`` from N to N+1 moves only ~1/(N+1) of the keys.
    """
    b, j = -1, 0
    while j < num_buckets:
        b = j
        key = (key * 2862933555777941757 + 1) & _MASK_64
        j = int((b + 1) * (float(1 << 31) / float((key >> 33) + 1)))
    return b


@dataclass(frozen=True)
class ShardMapping:
    """One version of the id -> shard function."""
    version: int
    partition_count: int
    strategy: Strategy = "jump"

    def __post_init__(self):
        if self.partition_count < 1:
            raise ConfigurationError(
                f"partition_count must be >= 1, got {self.partition_count}"
            )
        if self.strategy not in ("modulo", "jump"):
            raise ConfigurationError(f"Unknown routing strategy: {self.strategy}")

    def shard_for(self, record_id: str) -> int:
        if self.strategy == "modulo":
            digest = hashlib.sha256(record_id.encode("utf-8")).hexdigest()
            return int(digest, 16) % self.partition_count
        return jump_hash(_digest64(record_id), self.partition_count)


class PartitionRouter:
    """Routes record ids with a set of versioned mappings.

    Args:
        mappings: All active mapping versions
        write_version: Version used for new writes (default: highest)
        read_versions: Versions consulted on reads, in order
            (default: write version only)
    """

    def __init__(
        self,
        mappings: Iterable[ShardMapping],
        write_version: Optional[int] = None,
        read_versions: Optional[Iterable[int]] = None,
    ):
        self._mappings: dict[int, ShardMapping] = {}
        for mapping in mappings:
            if mapping.version in self._mappings:
                raise ConfigurationError(f"Duplicate mapping version {mapping.version}")
            self._mappings[mapping.version] = mapping
        if not self._mappings:
            raise ConfigurationError("At least one shard mapping is required")

        self._write_version = write_version if write_version is not None else max(self._mappings)
        if self._write_version not in self._mappings:
            raise ConfigurationError(f"Unknown write mapping version {self._write_version}")

        reads = list(read_versions) if read_versions else [self._write_version]
        for version in reads:
            if version not in self._mappings:
                raise ConfigurationError(f"Unknown read mapping version {version}")
        self._read_versions = tuple(reads)

    @classmethod
    def single(cls, partition_count: int, strategy: Strategy = "jump", version: int = 1) -> "PartitionRouter":
        return cls([ShardMapping(version, partition_count, strategy)])

    @property
    def current_version(self) -> int:
        return self._write_version

    @property
    def read_versions(self) -> tuple[int, ...]:
        return self._read_versions

    @property
    def versions(self) -> list[int]:
        return sorted(self._mappings)

    def mapping(self, version: int) -> ShardMapping:
        try:
            return self._mappings[version]
        except KeyError:
            raise ConfigurationError(f"Unknown mapping version {version}") from None

    def route(self, record_id: str, version: Optional[int] = None) -> ShardAssignment:
        """Shard of ``record_id`` under ``version`` (default: write version)."""
        mapping = self.mapping(self._write_version if version is None else version)
        return ShardAssignment(shard_id=mapping.shard_for(record_id), mapping_version=mapping.version)

    def read_assignments(self, record_id: str) -> list[ShardAssignment]:
        """Shards to consult for a read, one per read version.

        Versions that place the id on an already listed shard are skipped.
        """
        seen: set[int] = set()
        assignments = []
        for version in self._read_versions:
            assignment = self.route(record_id, version)
            if assignment.shard_id in seen:
                continue
            seen.add(assignment.shard_id)
            assignments.append(assignment)
        return assignments

    def with_mapping(self, mapping: ShardMapping, write: bool = False) -> "PartitionRouter":
        """Return a new router that also knows ``mapping``.

        With ``write=True`` the new mapping takes writes and reads consult it
        first, falling back to the previous read versions.
        """
        mappings = [m for v, m in self._mappings.items() if v != mapping.version] + [mapping]
        if write:
            reads = [mapping.version] + [v for v in self._read_versions if v != mapping.version]
            return PartitionRouter(mappings, write_version=mapping.version, read_versions=reads)
        return PartitionRouter(mappings, self._write_version, self._read_versions)
