from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

DEFAULT_VERSION = "1.0.0"
DEFAULT_PORT = 5912
DEFAULT_HOST = "127.0.0.1"
# Expands to <state dir>/capa.db, the default database location.
DEFAULT_DATABASE_PATH = "~/.capa/capa.db"
DEFAULT_TIMEOUT_MINUTES = 60


def _text(raw: Any, name: str) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return raw


def _integer(raw: Any, name: str) -> int:
    # bool is an int subclass; true/false is never a valid number here
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{name} must be an integer")
    return raw


def _port(raw: Any, name: str = "server.port") -> int:
    port = _integer(raw, name)
    if not 1 <= port <= 65535:
        raise ValueError(f"{name} must be between 1 and 65535")
    return port


def _positive(raw: Any, name: str) -> int:
    value = _integer(raw, name)
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def _int_from_text(text: str, name: str) -> int:
    try:
        return int(text.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


def _group(payload: dict[str, Any], name: str) -> dict[str, Any]:
    raw = payload.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{name}' must be an object")
    return raw


def _unknown(
    payload: dict[str, Any], known: tuple[str, ...], inherited: Mapping[str, Any]
) -> dict[str, Any]:
    extra = dict(inherited)
    extra.update({key: value for key, value in payload.items() if key not in known})
    return extra


def _with_extra(known: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    payload = dict(known)
    for key in sorted(extra):
        if key not in payload:
            payload[key] = extra[key]
    return payload


def _freeze(instance: object, extra: Mapping[str, Any]) -> None:
    # Read-only copy; documents never share a mutable mapping.
    object.__setattr__(instance, "extra", MappingProxyType(dict(extra)))


@dataclass(frozen=True, slots=True)
class ServerSection:
    KEYS: ClassVar[tuple[str, ...]] = ("port", "host")

    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, self.extra)
        self.validate()

    @classmethod
    def merged(cls, payload: dict[str, Any], defaults: "ServerSection") -> "ServerSection":
        port_raw = payload.get("port")
        host_raw = payload.get("host")
        return cls(
            port=port_raw if port_raw is not None else defaults.port,
            host=host_raw if host_raw is not None else defaults.host,
            extra=_unknown(payload, cls.KEYS, defaults.extra),
        )

    def validate(self) -> None:
        _port(self.port)
        _text(self.host, "server.host")

    def to_dict(self) -> dict[str, Any]:
        return _with_extra({"port": self.port, "host": self.host}, self.extra)


@dataclass(frozen=True, slots=True)
class DatabaseSection:
    KEYS: ClassVar[tuple[str, ...]] = ("path",)

    path: str = DEFAULT_DATABASE_PATH
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, self.extra)
        self.validate()

    @classmethod
    def merged(
        cls, payload: dict[str, Any], defaults: "DatabaseSection"
    ) -> "DatabaseSection":
        path_raw = payload.get("path")
        return cls(
            path=path_raw if path_raw is not None else defaults.path,
            extra=_unknown(payload, cls.KEYS, defaults.extra),
        )

    def validate(self) -> None:
        _text(self.path, "database.path")

    def to_dict(self) -> dict[str, Any]:
        return _with_extra({"path": self.path}, self.extra)


@dataclass(frozen=True, slots=True)
class SessionSection:
    KEYS: ClassVar[tuple[str, ...]] = ("timeout_minutes",)

    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, self.extra)
        self.validate()

    @classmethod
    def merged(
        cls, payload: dict[str, Any], defaults: "SessionSection"
    ) -> "SessionSection":
        timeout_raw = payload.get("timeout_minutes")
        return cls(
            timeout_minutes=(
                timeout_raw if timeout_raw is not None else defaults.timeout_minutes
            ),
            extra=_unknown(payload, cls.KEYS, defaults.extra),
        )

    def validate(self) -> None:
        _positive(self.timeout_minutes, "session.timeout_minutes")

    def to_dict(self) -> dict[str, Any]:
        return _with_extra({"timeout_minutes": self.timeout_minutes}, self.extra)


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """The persisted settings document.

    Every instance is validated on construction, so an invalid document can
    neither be loaded nor saved. Unrecognized keys, at the top level or inside
    a known group, are kept read-only in ``extra`` and written back after the
    known keys, so a file written by a newer release survives a round-trip
    through an older one. Documents hash on their known fields; ``extra``
    takes part in equality but not in the hash.
    """

    KEYS: ClassVar[tuple[str, ...]] = ("version", "server", "database", "session")

    version: str = DEFAULT_VERSION
    server: ServerSection = field(default_factory=ServerSection)
    database: DatabaseSection = field(default_factory=DatabaseSection)
    session: SessionSection = field(default_factory=SessionSection)
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False, hash=False)

    def __post_init__(self) -> None:
        _freeze(self, self.extra)
        self.validate()

    @classmethod
    def from_dict(
        cls,
        payload: dict[str, Any],
        defaults: "ServerSettings | None" = None,
    ) -> "ServerSettings":
        """Merge ``payload`` over ``defaults`` field by field.

        Missing (or null) fields take the default value; present fields are
        validated and raise ``ValueError`` when they have the wrong type.
        """
        base = defaults or DEFAULT_SETTINGS
        version_raw = payload.get("version")
        return cls(
            version=version_raw if version_raw is not None else base.version,
            server=ServerSection.merged(_group(payload, "server"), base.server),
            database=DatabaseSection.merged(_group(payload, "database"), base.database),
            session=SessionSection.merged(_group(payload, "session"), base.session),
            extra=_unknown(payload, cls.KEYS, base.extra),
        )

    def validate(self) -> None:
        _text(self.version, "version")
        for name, section, kind in (
            ("server", self.server, ServerSection),
            ("database", self.database, DatabaseSection),
            ("session", self.session, SessionSection),
        ):
            if not isinstance(section, kind):
                raise ValueError(f"'{name}' must be a {kind.__name__}")

    def to_dict(self) -> dict[str, Any]:
        return _with_extra(
            {
                "version": self.version,
                "server": self.server.to_dict(),
                "database": self.database.to_dict(),
                "session": self.session.to_dict(),
            },
            self.extra,
        )

    def unknown_keys(self) -> list[str]:
        keys = list(self.extra)
        for name, section in (
            ("server", self.server),
            ("database", self.database),
            ("session", self.session),
        ):
            keys.extend(f"{name}.{key}" for key in section.extra)
        return sorted(keys)

    def with_value(self, key: str, text: str) -> "ServerSettings":
        """Return a copy with the dotted field ``key`` set from ``text``."""
        if key == "version":
            return replace(self, version=text)
        if key == "server.port":
            port = _int_from_text(text, key)
            return replace(self, server=replace(self.server, port=port))
        if key == "server.host":
            return replace(self, server=replace(self.server, host=text))
        if key == "database.path":
            return replace(self, database=replace(self.database, path=text))
        if key == "session.timeout_minutes":
            timeout = _int_from_text(text, key)
            return replace(self, session=replace(self.session, timeout_minutes=timeout))
        raise ValueError(f"Unknown settings key: {key}")


DEFAULT_SETTINGS = ServerSettings()

SETTINGS_KEYS: tuple[str, ...] = (
    "version",
    "server.port",
    "server.host",
    "database.path",
    "session.timeout_minutes",
)
