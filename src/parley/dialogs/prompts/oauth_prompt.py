"""Prompt that signs the user in with an external OAuth provider."""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from parley.activity import (
    TOKEN_EXCHANGE_OPERATION_NAME,
    TOKEN_RESPONSE_EVENT_NAME,
    VERIFY_STATE_OPERATION_NAME,
    Activity,
    ActivityTypes,
    Channels,
    InputHints,
    invoke_response,
    message_activity,
)
from parley.adapter import BOT_IDENTITY_KEY, supports
from parley.cards import OAUTH_CARD_CONTENT_TYPE, SIGNIN_CARD_CONTENT_TYPE, ActionTypes, oauth_card, signin_card
from parley.context import TurnContext
from parley.dialogs.dialog import Dialog
from parley.dialogs.dialog_context import DialogContext
from parley.dialogs.prompts.prompt import (
    PromptOptions,
    PromptRecognizerResult,
    PromptValidator,
    PromptValidatorContext,
)
from parley.envelope import field_of
from parley.errors import AdapterCapabilityError
from parley.types import END_OF_TURN, DialogTurnResult, TokenResponse

DEFAULT_TIMEOUT_MS = 900_000
OAUTH_LOGIN_TIMEOUT_KEY = "parley.oauth_login_timeout"
MAGIC_CODE_PATTERN = re.compile(r"(\d{6})")

# Adapters that cannot render provider managed OAuth cards.
COMMUNITY_ADAPTERS = frozenset(
    {
        "Facebook Adapter",
        "Google Hangouts Adapter",
        "Slack Adapter",
        "Twilio SMS Adapter",
        "Web Adapter",
        "Webex Adapter",
        "Botkit CMS",
    }
)
CHANNELS_WITHOUT_OAUTH_CARD = frozenset(
    {Channels.MSTEAMS, Channels.CORTANA, Channels.SKYPE, Channels.SKYPE_FOR_BUSINESS}
)
ANONYMOUS_SKILL_APP_ID = "AnonymousSkill"
CHANNEL_TOKEN_ISSUER = "https://api.botframework.com"

OPTIONS = "options"
EXPIRES_AT = "expires_at_epoch_ms"
ATTEMPT_COUNT = "attempt_count"
VALIDATOR_STATE = "validator_state"

MISSING_EXCHANGE_VALUE = (
    "The bot received an InvokeActivity that is missing a TokenExchangeInvokeRequest value. "
    "This is required to be sent with the InvokeActivity."
)
CONNECTION_NAME_MISMATCH = (
    "The bot received an InvokeActivity with a TokenExchangeInvokeRequest containing a ConnectionName "
    "that does not match the ConnectionName expected by the bot's active OAuthPrompt. "
    "Ensure these names match when sending the InvokeActivity."
)
EXCHANGE_NOT_SUPPORTED = (
    "The bot's BotAdapter does not support token exchange operations. "
    "Ensure the bot's Adapter supports the UserTokenProvider interface."
)
UNABLE_TO_EXCHANGE = "The bot is unable to exchange token. Proceed with regular login."


def _now_ms() -> int:
    return int(time.time() * 1000)


class OAuthPromptSettings(BaseModel):
    """Settings for one `OAuthPrompt`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    connection_name: str
    title: str
    text: str | None = None
    timeout: int | None = None
    oauth_app_credentials: Any = None


class OAuthPrompt(Dialog):
    """Ask the user to sign in and complete with their `TokenResponse`.

    The prompt first tries to fetch an existing token silently. Without one it
    sends a login card and waits. A later turn can complete the sign-in in
    exactly one of four ways, tried in this order:

    - a ``tokens/response`` event carrying the token,
    - a ``signin/verifyState`` invoke whose code is redeemed with the provider,
    - a ``signin/tokenExchange`` invoke whose token is exchanged with the provider,
    - a message containing a six digit magic code.

    Message turns arriving after the timeout end the prompt with ``None``.
    Invokes and events never time the prompt out since they may be mid-exchange.
    """

    def __init__(
        self,
        dialog_id: str,
        settings: OAuthPromptSettings,
        validator: PromptValidator[TokenResponse] | None = None,
    ) -> None:
        super().__init__(dialog_id)
        self.settings = settings
        self.validator = validator

    @property
    def timeout_ms(self) -> int:
        return self.settings.timeout if self.settings.timeout is not None else DEFAULT_TIMEOUT_MS

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        prompt_options = _coerce_options(options).with_input_hints()

        state = dc.active_dialog.state
        state[OPTIONS] = prompt_options.model_dump(mode="json")
        state[EXPIRES_AT] = _now_ms() + self.timeout_ms
        state[ATTEMPT_COUNT] = 0
        state[VALIDATOR_STATE] = {}

        token = await self.get_user_token(dc.context)
        if token is not None:
            logger.info("oauth.token_present connection={}", self.settings.connection_name)
            return await dc.end_dialog(token)

        await self._send_oauth_card(dc.context, prompt_options.prompt)
        return END_OF_TURN

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        state = dc.active_dialog.state
        context = dc.context
        is_message = context.activity.type == ActivityTypes.MESSAGE

        if is_message and _now_ms() > int(state.get(EXPIRES_AT, 0)):
            logger.info("oauth.timed_out connection={}", self.settings.connection_name)
            return await dc.end_dialog(None)

        recognized = await self._recognize_token(context)
        options = PromptOptions.model_validate(state.get(OPTIONS) or {})

        if self.validator is not None:
            state[ATTEMPT_COUNT] = int(state.get(ATTEMPT_COUNT, 0)) + 1
            is_valid = await self.validator(
                PromptValidatorContext(
                    context=context,
                    recognized=recognized,
                    state=state.setdefault(VALIDATOR_STATE, {}),
                    options=options,
                    attempt_count=state[ATTEMPT_COUNT],
                )
            )
        else:
            is_valid = recognized.succeeded

        if is_valid:
            return await dc.end_dialog(recognized.value)

        if not context.responded and is_message and options.retry_prompt is not None:
            await context.send_activity(_as_activity(options.retry_prompt))
        return END_OF_TURN

    async def get_user_token(self, context: TurnContext, code: str | None = None) -> TokenResponse | None:
        """Fetch the user's token, redeeming a magic code when one is given."""

        if not supports(context.adapter, "get_user_token"):
            raise AdapterCapabilityError("OAuthPrompt.get_user_token")
        return await context.adapter.get_user_token(
            context, self.settings.connection_name, code, self.settings.oauth_app_credentials
        )

    async def sign_out_user(self, context: TurnContext) -> None:
        """Sign the user out of the configured connection."""

        if not supports(context.adapter, "sign_out_user"):
            raise AdapterCapabilityError("OAuthPrompt.sign_out_user")
        await context.adapter.sign_out_user(
            context, self.settings.connection_name, None, self.settings.oauth_app_credentials
        )
        logger.info("oauth.signed_out connection={}", self.settings.connection_name)

    async def _send_oauth_card(self, context: TurnContext, prompt: Activity | str | None) -> None:
        if not supports(context.adapter, "get_sign_in_resource"):
            raise AdapterCapabilityError("OAuthPrompt.send_oauth_card")

        message = _as_activity(prompt) if prompt is not None else message_activity(None, InputHints.ACCEPTING_INPUT)
        attachments = list(message.attachments)
        content_types = {attachment.content_type for attachment in attachments}

        if self._is_oauth_card_supported(context):
            if OAUTH_CARD_CONTENT_TYPE not in content_types:
                resource = await self._sign_in_resource(context)
                link = resource.sign_in_link
                action_type = ActionTypes.SIGNIN
                if self._uses_sign_in_link(context):
                    if context.activity.channel_id == Channels.EMULATOR:
                        action_type = ActionTypes.OPEN_URL
                else:
                    link = None
                attachments.append(
                    oauth_card(
                        self.settings.connection_name,
                        self.settings.title,
                        self.settings.text,
                        link,
                        resource.token_exchange_resource,
                        action_type,
                    )
                )
        elif SIGNIN_CARD_CONTENT_TYPE not in content_types:
            resource = await self._sign_in_resource(context)
            attachments.append(signin_card(self.settings.title, resource.sign_in_link, self.settings.text))

        if OAUTH_LOGIN_TIMEOUT_KEY not in context.turn_state and self.settings.timeout:
            context.turn_state[OAUTH_LOGIN_TIMEOUT_KEY] = self.settings.timeout

        await context.send_activity(message.model_copy(update={"attachments": attachments}))
        logger.info("oauth.card_sent connection={} channel={}", self.settings.connection_name, context.activity.channel_id)

    async def _sign_in_resource(self, context: TurnContext):
        return await context.adapter.get_sign_in_resource(
            context,
            self.settings.connection_name,
            context.activity.sender_id,
            None,
            self.settings.oauth_app_credentials,
        )

    async def _recognize_token(self, context: TurnContext) -> PromptRecognizerResult[TokenResponse]:
        activity = context.activity
        token: TokenResponse | None = None
        if _is_token_response_event(activity):
            token = TokenResponse.from_value(activity.value)
        elif _is_verification_invoke(activity):
            token = await self._verify_state(context)
        elif _is_token_exchange_invoke(activity):
            token = await self._exchange_token(context)
        elif activity.type == ActivityTypes.MESSAGE:
            matched = MAGIC_CODE_PATTERN.search(activity.text or "")
            if matched:
                token = await self.get_user_token(context, matched.group(1))
        return PromptRecognizerResult(succeeded=token is not None, value=token)

    async def _verify_state(self, context: TurnContext) -> TokenResponse | None:
        value = context.activity.value
        code = field_of(value, "state") if value is not None else None
        if not isinstance(code, str) or not code:
            logger.warning("oauth.verify_state_missing_code connection={}", self.settings.connection_name)
            await context.send_activity(invoke_response(HTTPStatus.INTERNAL_SERVER_ERROR))
            return None
        try:
            token = await self.get_user_token(context, code)
        except Exception:
            logger.opt(exception=True).warning("oauth.verify_state_failed connection={}", self.settings.connection_name)
            await context.send_activity(invoke_response(HTTPStatus.INTERNAL_SERVER_ERROR))
            return None
        status = HTTPStatus.OK if token is not None else HTTPStatus.NOT_FOUND
        await context.send_activity(invoke_response(status))
        return token

    async def _exchange_token(self, context: TurnContext) -> TokenResponse | None:
        request = context.activity.value
        if not isinstance(request, Mapping) or "token" not in request:
            await context.send_activity(self._exchange_response(HTTPStatus.BAD_REQUEST, MISSING_EXCHANGE_VALUE))
            return None

        connection_name = request.get("connection_name", request.get("connectionName"))
        if connection_name != self.settings.connection_name:
            await context.send_activity(self._exchange_response(HTTPStatus.BAD_REQUEST, CONNECTION_NAME_MISMATCH))
            return None

        if not supports(context.adapter, "exchange_token"):
            await context.send_activity(self._exchange_response(HTTPStatus.BAD_GATEWAY, EXCHANGE_NOT_SUPPORTED))
            raise AdapterCapabilityError("OAuthPrompt.recognize_token")

        exchanged = await context.adapter.exchange_token(
            context,
            self.settings.connection_name,
            context.activity.sender_id,
            {"token": request["token"]},
        )
        if exchanged is None or not exchanged.token:
            await context.send_activity(self._exchange_response(HTTPStatus.CONFLICT, UNABLE_TO_EXCHANGE))
            return None

        await context.send_activity(self._exchange_response(HTTPStatus.OK, None, request.get("id")))
        return TokenResponse(
            connection_name=exchanged.connection_name,
            token=exchanged.token,
            channel_id=exchanged.channel_id,
            expiration=None,
        )

    def _exchange_response(self, status: HTTPStatus, failure_detail: str | None, request_id: str | None = None) -> Activity:
        return invoke_response(
            status,
            {
                "id": request_id,
                "connection_name": self.settings.connection_name,
                "failure_detail": failure_detail,
            },
        )

    def _is_oauth_card_supported(self, context: TurnContext) -> bool:
        if getattr(context.adapter, "name", None) in COMMUNITY_ADAPTERS:
            return False
        return context.activity.channel_id not in CHANNELS_WITHOUT_OAUTH_CARD

    def _uses_sign_in_link(self, context: TurnContext) -> bool:
        # Skills, streaming connections and explicit app credentials cannot rely on the channel's SSO.
        identity = context.turn_state.get(BOT_IDENTITY_KEY)
        claims = field_of(identity, "claims") if identity is not None else None
        return (
            _is_skill_claim(claims)
            or _is_from_streaming_connection(context.activity)
            or self.settings.oauth_app_credentials is not None
        )


def _coerce_options(options: Any) -> PromptOptions:
    if options is None:
        return PromptOptions()
    if isinstance(options, PromptOptions):
        return options
    return PromptOptions.model_validate(options)


def _as_activity(prompt: Activity | str) -> Activity:
    if isinstance(prompt, str):
        return message_activity(prompt, InputHints.ACCEPTING_INPUT)
    return prompt.model_copy(deep=True)


def _is_token_response_event(activity: Activity) -> bool:
    return activity.type == ActivityTypes.EVENT and activity.name == TOKEN_RESPONSE_EVENT_NAME


def _is_verification_invoke(activity: Activity) -> bool:
    return activity.type == ActivityTypes.INVOKE and activity.name == VERIFY_STATE_OPERATION_NAME


def _is_token_exchange_invoke(activity: Activity) -> bool:
    return activity.type == ActivityTypes.INVOKE and activity.name == TOKEN_EXCHANGE_OPERATION_NAME


def _is_from_streaming_connection(activity: Activity) -> bool:
    return bool(activity.service_url) and not activity.service_url.lower().startswith("http")


def _is_skill_claim(claims: Mapping[str, Any] | None) -> bool:
    if not claims:
        return False
    app_id = claims.get("appid") if claims.get("ver") == "1.0" else claims.get("azp")
    if app_id == ANONYMOUS_SKILL_APP_ID:
        return True
    audience = claims.get("aud")
    if not claims.get("ver") or not audience or audience == CHANNEL_TOKEN_ISSUER:
        return False
    return bool(app_id) and app_id != audience
