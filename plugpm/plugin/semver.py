"""
Semantic Version Resolution.

This module resolves version constraints against a registry's tag list.

Key features:
- SemVer 2.0 parsing and precedence (pre-release aware, build ignored)
- Range constraints: ^, ~, ~>, ~=, comparison operators, wildcards,
  hyphen ranges, AND (space or comma) and OR (|| or "or")
- Pre-release tags only match ranges that mention a pre-release
  of the same major.minor.patch
- Deterministic resolution returning the registry's literal tag
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from plugpm.errors import InvalidConstraint, NoSatisfyingVersion

DEV_PREFIX = "dev-"
LATEST = "latest"

_IDENTIFIER = r"(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    rf"(?:-(?P<prerelease>{_IDENTIFIER}(?:\.{_IDENTIFIER})*))?"
    r"(?:\+(?P<build>[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    rf"(?:-(?P<prerelease>{_IDENTIFIER}(?:\.{_IDENTIFIER})*))?"
    r"(?:\+[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*)?$"
)

_OPERATOR_RE = re.compile(r"^(>=|<=|!=|==|~>|~=|[<>=^~])?(.*)$")

_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")

_OR_RE = re.compile(r"\s*\|\|\s*|\s+or\s+")


def is_registry_ref(constraint: str | None) -> bool:
    """
    Check whether a constraint is answered by the registry directly.

    None, "latest" and "dev-*" refs are not ranges: the registry knows
    which release they point to.

    Args:
        constraint: Constraint string or None

    Returns:
        True if the constraint must not go through range resolution
    """
    return constraint is None or constraint == LATEST or constraint.startswith(DEV_PREFIX)


@dataclass(frozen=True, eq=False)
class SemVer:
    """
    A parsed semantic version.

    Attributes:
        major: Major version number
        minor: Minor version number
        patch: Patch version number
        prerelease: Pre-release identifiers (empty for releases)
        build: Build metadata identifiers (ignored for precedence)
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "SemVer":
        """
        Parse a semantic version string (optional leading "v").

        Raises:
            ValueError: If text is not a semantic version
        """
        match = _SEMVER_RE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid semantic version: {text!r}")

        prerelease = match.group("prerelease")
        build = match.group("build")
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            patch=int(match.group("patch")),
            prerelease=tuple(prerelease.split(".")) if prerelease else (),
            build=tuple(build.split(".")) if build else (),
        )

    @classmethod
    def parse_or_none(cls, text: str) -> "SemVer | None":
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def precedence_key(self) -> tuple:
        """
        Sort key implementing SemVer 2.0 precedence.

        A release sorts above its pre-releases; numeric identifiers sort
        below alphanumeric ones; a longer identifier list wins when all
        preceding identifiers are equal.
        """
        if not self.prerelease:
            return (*self.release, 1, ())

        identifiers = tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in self.prerelease
        )
        return (*self.release, 0, identifiers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.precedence_key() == other.precedence_key()

    def __lt__(self, other: "SemVer") -> bool:
        return self.precedence_key() < other.precedence_key()

    def __le__(self, other: "SemVer") -> bool:
        return self.precedence_key() <= other.precedence_key()

    def __gt__(self, other: "SemVer") -> bool:
        return self.precedence_key() > other.precedence_key()

    def __ge__(self, other: "SemVer") -> bool:
        return self.precedence_key() >= other.precedence_key()

    def __hash__(self) -> int:
        return hash(self.precedence_key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + ".".join(self.build)
        return text


@dataclass(frozen=True)
class Comparator:
    """
    A single primitive comparison against a version.

    Attributes:
        operator: One of =, !=, >, >=, <, <=
        version: Version to compare against
    """

    operator: str
    version: SemVer

    def test(self, version: SemVer) -> bool:
        if self.operator == "=":
            return version == self.version
        elif self.operator == "!=":
            return version != self.version
        elif self.operator == ">":
            return version > self.version
        elif self.operator == ">=":
            return version >= self.version
        elif self.operator == "<":
            return version < self.version
        elif self.operator == "<=":
            return version <= self.version
        raise InvalidConstraint(f"Unknown version operator: {self.operator}")

    def __str__(self) -> str:
        return f"{self.operator}{self.version}"


@dataclass(frozen=True)
class _Partial:
    """A possibly incomplete version, None marking a wildcard component."""

    major: int | None
    minor: int | None
    patch: int | None
    prerelease: tuple[str, ...] = ()

    @property
    def is_full(self) -> bool:
        return self.patch is not None

    def floor(self) -> SemVer:
        return SemVer(self.major or 0, self.minor or 0, self.patch or 0, self.prerelease)

    def next_bound(self) -> SemVer:
        """Lowest version above every version matched by this partial."""
        if self.minor is None:
            return SemVer(self.major + 1, 0, 0, ("0",))
        return SemVer(self.major, self.minor + 1, 0, ("0",))


def _parse_partial(text: str, constraint: str) -> _Partial:
    match = _PARTIAL_RE.match(text)
    if not match:
        raise InvalidConstraint(
            f"Invalid version {text!r} in constraint {constraint!r}", constraint=constraint
        )

    components: list[int | None] = []
    wildcard = False
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        if value is None or value in ("x", "X", "*"):
            wildcard = True
        components.append(None if wildcard else int(value))

    prerelease = match.group("prerelease")
    if prerelease and components[2] is None:
        raise InvalidConstraint(
            f"Pre-release requires a full version in constraint {constraint!r}",
            constraint=constraint,
        )

    return _Partial(
        major=components[0],
        minor=components[1],
        patch=components[2],
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
    )


def _xrange(partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        return []
    if partial.is_full:
        return [Comparator("=", partial.floor())]
    return [Comparator(">=", partial.floor()), Comparator("<", partial.next_bound())]


def _caret(partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        return []

    if partial.major > 0 or partial.minor is None:
        upper = SemVer(partial.major + 1, 0, 0, ("0",))
    elif partial.minor > 0 or partial.patch is None:
        upper = SemVer(0, partial.minor + 1, 0, ("0",))
    else:
        upper = SemVer(0, 0, partial.patch + 1, ("0",))

    return [Comparator(">=", partial.floor()), Comparator("<", upper)]


def _tilde(partial: _Partial) -> list[Comparator]:
    if partial.major is None:
        return []
    return [Comparator(">=", partial.floor()), Comparator("<", partial.next_bound())]


def _compatible(partial: _Partial, constraint: str) -> list[Comparator]:
    # ~=1.2.3 means >=1.2.3 <1.3.0, ~=1.2 means >=1.2.0 <2.0.0
    if partial.major is None or partial.minor is None:
        raise InvalidConstraint(
            f"Operator ~= needs at least major.minor in constraint {constraint!r}",
            constraint=constraint,
        )
    if partial.is_full:
        return _tilde(partial)
    return [
        Comparator(">=", partial.floor()),
        Comparator("<", SemVer(partial.major + 1, 0, 0, ("0",))),
    ]


def _primitive(operator: str, partial: _Partial, constraint: str) -> list[Comparator]:
    if partial.is_full:
        return [Comparator(operator, partial.floor())]

    if partial.major is None:
        if operator in (">=", "<=", "="):
            return []
        raise InvalidConstraint(
            f"Operator {operator} cannot be used with a wildcard in {constraint!r}",
            constraint=constraint,
        )

    if operator == "=":
        return _xrange(partial)
    elif operator == ">":
        bound = partial.next_bound()
        return [Comparator(">=", SemVer(bound.major, bound.minor, bound.patch))]
    elif operator == ">=":
        return [Comparator(">=", partial.floor())]
    elif operator == "<":
        return [Comparator("<", SemVer(partial.major, partial.minor or 0, 0, ("0",)))]
    elif operator == "<=":
        return [Comparator("<", partial.next_bound())]

    raise InvalidConstraint(
        f"Operator {operator} requires a full version in {constraint!r}",
        constraint=constraint,
    )


def _parse_token(token: str, constraint: str) -> list[Comparator]:
    match = _OPERATOR_RE.match(token)
    operator = match.group(1) or "="
    version_text = match.group(2)

    if not version_text:
        raise InvalidConstraint(
            f"Missing version after {operator!r} in constraint {constraint!r}",
            constraint=constraint,
        )

    partial = _parse_partial(version_text, constraint)

    if operator == "^":
        return _caret(partial)
    elif operator in ("~", "~>"):
        return _tilde(partial)
    elif operator == "~=":
        return _compatible(partial, constraint)
    elif operator == "==":
        operator = "="

    return _primitive(operator, partial, constraint)


def _parse_hyphen(low_text: str, high_text: str, constraint: str) -> list[Comparator]:
    low = _parse_partial(low_text, constraint)
    high = _parse_partial(high_text, constraint)

    comparators = []
    if low.major is not None:
        comparators.append(Comparator(">=", low.floor()))
    if high.major is not None:
        if high.is_full:
            comparators.append(Comparator("<=", high.floor()))
        else:
            comparators.append(Comparator("<", high.next_bound()))
    return comparators


def _parse_alternative(text: str, constraint: str) -> tuple[Comparator, ...]:
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        return tuple(_parse_hyphen(hyphen.group(1), hyphen.group(2), constraint))

    # Glue operators to their version (">= 1.2" -> ">=1.2")
    text = re.sub(r"(>=|<=|!=|==|~>|~=|[<>=^~])\s+", r"\1", text.strip())
    tokens = [token for token in re.split(r"[\s,]+", text) if token]

    if not tokens:
        raise InvalidConstraint(f"Empty range in constraint {constraint!r}", constraint=constraint)

    comparators: list[Comparator] = []
    for token in tokens:
        comparators.extend(_parse_token(token, constraint))
    return tuple(comparators)


@dataclass(frozen=True)
class Constraint:
    """
    A parsed version range: an OR of AND-ed comparator sets.

    Attributes:
        text: Original constraint string
        alternatives: Comparator sets; a version matches if any set matches
    """

    text: str
    alternatives: tuple[tuple[Comparator, ...], ...]

    @classmethod
    def parse(cls, text: str) -> "Constraint":
        """
        Parse a range constraint.

        Args:
            text: Constraint string (e.g. "^1.2.0", ">=1.0 <2.0 || 3.x")

        Returns:
            Constraint object

        Raises:
            InvalidConstraint: If the constraint cannot be parsed
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidConstraint(f"Invalid version constraint: {text!r}", constraint=text)

        alternatives = tuple(
            _parse_alternative(part, text) for part in _OR_RE.split(text.strip())
        )
        return cls(text=text, alternatives=alternatives)

    def satisfied_by(self, version: SemVer) -> bool:
        """
        Check if a version satisfies this constraint.

        Args:
            version: Parsed version to check

        Returns:
            True if any comparator set accepts the version
        """
        return any(_test_set(comparators, version) for comparators in self.alternatives)

    def __str__(self) -> str:
        return self.text


def _test_set(comparators: tuple[Comparator, ...], version: SemVer) -> bool:
    if not all(comparator.test(version) for comparator in comparators):
        return False

    if not version.prerelease:
        return True

    # Pre-releases only match when the range opts into that exact release line
    return any(
        comparator.version.prerelease and comparator.version.release == version.release
        for comparator in comparators
    )


def sort_versions(candidate_tags: Iterable[str]) -> list[tuple[SemVer, str]]:
    """
    Parse and sort candidate tags from highest to lowest precedence.

    Tags that are not semantic versions (e.g. "dev-main") are dropped.
    Tags of equal precedence are ordered by their literal string.

    Args:
        candidate_tags: Tags as published by the registry

    Returns:
        List of (version, literal tag) pairs
    """
    candidates = []
    for tag in set(candidate_tags):
        version = SemVer.parse_or_none(tag)
        if version is not None:
            candidates.append((version, tag))

    candidates.sort(key=lambda item: item[1])
    # Stable sort: equal precedence keeps the literal tag order above
    candidates.sort(key=lambda item: item[0].precedence_key(), reverse=True)
    return candidates


def resolve(
    constraint: str | Constraint,
    candidate_tags: Iterable[str],
    plugin_key: str | None = None,
) -> str:
    """
    Pick the highest candidate tag satisfying a constraint.

    Args:
        constraint: Range constraint (string or parsed)
        candidate_tags: Tags as published by the registry, order irrelevant
        plugin_key: Plugin key used for error context

    Returns:
        The literal registry tag of the best match

    Raises:
        InvalidConstraint: If the constraint cannot be parsed
        NoSatisfyingVersion: If no candidate satisfies the constraint
    """
    if not isinstance(constraint, Constraint):
        try:
            constraint = Constraint.parse(constraint)
        except InvalidConstraint as e:
            e.plugin_key = plugin_key
            raise

    for version, tag in sort_versions(candidate_tags):
        if constraint.satisfied_by(version):
            return tag

    raise NoSatisfyingVersion(
        f"No version satisfies constraint {constraint.text!r}",
        plugin_key=plugin_key,
        constraint=constraint.text,
    )


__all__ = [
    "DEV_PREFIX",
    "LATEST",
    "SemVer",
    "Comparator",
    "Constraint",
    "is_registry_ref",
    "sort_versions",
    "resolve",
]
