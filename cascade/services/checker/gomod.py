"""Minimal go.mod reader.

Only the directives the checker needs are understood: ``module``,
``require`` and ``replace`` (single-line and block forms). Everything else
is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["GoMod", "Replacement", "parse_go_mod"]


@dataclass(frozen=True, slots=True)
class Replacement:
    new_path: str
    new_version: str | None = None

    @property
    def is_local(self) -> bool:
        return self.new_path.startswith(("./", "../", "/")) or self.new_path in (".", "..")


@dataclass(frozen=True, slots=True)
class GoMod:
    module: str | None = None
    requires: dict[str, str] = field(default_factory=dict[str, str])
    replaces: dict[str, Replacement] = field(default_factory=dict[str, Replacement])


def _strip_comment(line: str) -> str:
    idx = line.find("//")
    if idx >= 0:
        line = line[:idx]
    return line.strip()


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in ('"', "`"):
        return token[1:-1]
    return token


def parse_go_mod(text: str) -> GoMod:
    module: str | None = None
    requires: dict[str, str] = {}
    replaces: dict[str, Replacement] = {}

    block: str | None = None
    for raw in text.splitlines():
        line = _strip_comment(raw)
        if not line:
            continue

        if block is not None:
            if line == ")":
                block = None
                continue
            _directive(block, line.split(), requires, replaces)
            continue

        fields = line.split()
        verb = fields[0]
        if verb == "module" and len(fields) >= 2:
            module = _unquote(fields[1])
        elif verb in ("require", "replace"):
            if len(fields) == 2 and fields[1] == "(":
                block = verb
            else:
                _directive(verb, fields[1:], requires, replaces)

    return GoMod(module=module, requires=requires, replaces=replaces)


def _directive(
    verb: str,
    fields: list[str],
    requires: dict[str, str],
    replaces: dict[str, Replacement],
) -> None:
    fields = [_unquote(f) for f in fields]
    if verb == "require":
        if len(fields) >= 2:
            requires[fields[0]] = fields[1]
        return

    # replace old [v] => new [v]
    if "=>" not in fields:
        return
    arrow = fields.index("=>")
    left, right = fields[:arrow], fields[arrow + 1 :]
    if not left or not right:
        return
    replaces[left[0]] = Replacement(
        new_path=right[0],
        new_version=right[1] if len(right) > 1 else None,
    )
