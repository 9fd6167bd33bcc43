"""Login affordance attachments."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from parley.activity import Attachment

OAUTH_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.oauth"
SIGNIN_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.signin"


class ActionTypes(StrEnum):
    SIGNIN = "signin"
    OPEN_URL = "openUrl"


def oauth_card(
    connection_name: str,
    title: str,
    text: str | None = None,
    link: str | None = None,
    token_exchange_resource: dict[str, Any] | None = None,
    action_type: str = ActionTypes.SIGNIN,
) -> Attachment:
    """Card the channel turns into a provider managed sign-in flow."""

    return Attachment(
        content_type=OAUTH_CARD_CONTENT_TYPE,
        content={
            "text": text,
            "connection_name": connection_name,
            "buttons": [{"type": str(action_type), "title": title, "value": link}],
            "token_exchange_resource": token_exchange_resource,
        },
    )


def signin_card(title: str, link: str | None, text: str | None = None) -> Attachment:
    """Plain card with one sign-in link, for channels without OAuth cards."""

    return Attachment(
        content_type=SIGNIN_CARD_CONTENT_TYPE,
        content={
            "text": text,
            "buttons": [{"type": str(ActionTypes.SIGNIN), "title": title, "value": link}],
        },
    )
