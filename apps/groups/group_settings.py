"""
Effective group settings.

Older group rows carry the posting flags as flat columns; newer rows keep them
in the ``settings`` JSON. The effective value of each flag is the settings
entry, else the flat column, else the default. Resolve once per loaded group
and read flags from the result.
"""

from dataclasses import dataclass, asdict

DEFAULT_ALLOW_MEMBER_POSTS = True
DEFAULT_REQUIRE_APPROVAL = False
DEFAULT_ALLOW_INVITES = True

SETTING_DEFAULTS = {
    'allow_member_posts': DEFAULT_ALLOW_MEMBER_POSTS,
    'require_approval': DEFAULT_REQUIRE_APPROVAL,
    'allow_invites': DEFAULT_ALLOW_INVITES,
}


@dataclass(frozen=True)
class GroupSettings:
    allow_member_posts: bool = DEFAULT_ALLOW_MEMBER_POSTS
    require_approval: bool = DEFAULT_REQUIRE_APPROVAL
    allow_invites: bool = DEFAULT_ALLOW_INVITES

    def as_dict(self):
        return asdict(self)


def _resolve_flag(stored: dict, legacy_value, key: str) -> bool:
    value = stored.get(key)
    if value is None:
        value = legacy_value
    if value is None:
        value = SETTING_DEFAULTS[key]
    return bool(value)


def resolve_group_settings(group) -> GroupSettings:
    stored = group.settings if isinstance(group.settings, dict) else {}
    return GroupSettings(
        allow_member_posts=_resolve_flag(stored, group.allow_member_posts, 'allow_member_posts'),
        require_approval=_resolve_flag(stored, group.require_approval, 'require_approval'),
        allow_invites=_resolve_flag(stored, group.allow_invites, 'allow_invites'),
    )
