"""
Domain state container: owns every in-memory collection and the session.

Every mutation goes through mutate_with_fallback:

1. gateway call (skipped for client-only collections)
2. success                  -> server data is the truth; reconcile memory; mirror to the store
3. GatewayUnavailableError  -> read-modify-write the persisted value; memory follows it
4. ApiResponseError         -> no fallback; error notification with the server message
5. SessionExpiredError      -> no fallback, nothing written; the session is already torn down

Mutations on one collection are serialized by a per-collection lock held across the
gateway call and the store read-modify-write. Memory is never updated optimistically.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from autocontrol.application.collections import (
    COLLECTIONS,
    CURRENT_USER_KEY,
    DELIVERY_RECORDS,
    ESTABLISHMENT_KEY,
    INCIDENTS,
    TOKEN_KEY,
    USERS,
    CollectionSpec,
    get_collection,
)
from autocontrol.application.exceptions import (
    ApiResponseError,
    ApplicationError,
    GatewayUnavailableError,
    SessionExpiredError,
)
from autocontrol.application.ids import new_local_id
from autocontrol.application.notifications import (
    NotificationCenter,
    NotificationTemplate,
    NotificationType,
    UserNotifications,
)
from autocontrol.application.ports import Confirmer, FallbackStore, Gateway
from autocontrol.core.context import company_id_ctx, correlation_id_ctx
from autocontrol.domain.exceptions import DomainError, DomainValidationError, EntityNotFoundError
from autocontrol.domain.models import EstablishmentInfo, Role, Session, TracedRecord, User
from autocontrol.domain.validators import (
    validate_email,
    validate_establishment_info,
    validate_user_input,
)
from autocontrol.domain.validators.record_validator import PASSWORD_MAX, PASSWORD_MIN
from autocontrol.observability.failure_classifier import FailureClassifier
from autocontrol.observability.metrics import (
    MUTATION_FALLBACK,
    MUTATION_LOCAL,
    MUTATION_REJECTED,
    MUTATION_REMOTE,
    MUTATION_UNAUTHORIZED,
    MetricsCollector,
)
from autocontrol.security import rbac
from autocontrol.security.exceptions import AuthorizationError, TenantIsolationError
from autocontrol.security.rbac import RBACService
from autocontrol.security.tenant_context import TenantContext

AUTH_PATH = "/api/auth"
LOGIN_PATH = "/api/auth/login"
REGISTER_PATH = "/api/auth/register"
FORGOT_PASSWORD_PATH = "/api/auth/forgot-password"
RESET_PASSWORD_PATH = "/api/auth/reset-password"
ESTABLISHMENT_PATH = "/api/establishment"

Clock = Callable[[], datetime]
StateListener = Callable[[str], None]


class MutationOutcome(str, Enum):
    REMOTE = "remote"
    FALLBACK = "fallback"
    LOCAL = "local"
    REJECTED = "rejected"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


_OUTCOME_COUNTERS = {
    MutationOutcome.REMOTE: MUTATION_REMOTE,
    MutationOutcome.FALLBACK: MUTATION_FALLBACK,
    MutationOutcome.LOCAL: MUTATION_LOCAL,
    MutationOutcome.REJECTED: MUTATION_REJECTED,
    MutationOutcome.UNAUTHORIZED: MUTATION_UNAUTHORIZED,
}


@dataclass(frozen=True)
class MutationResult:
    outcome: MutationOutcome
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.outcome in (MutationOutcome.REMOTE, MutationOutcome.FALLBACK, MutationOutcome.LOCAL)


class _Denied(Exception):
    """Guard refusal inside the container; turned into a notification, never escapes."""

    def __init__(self, message: str, kind: NotificationType = NotificationType.ERROR) -> None:
        self.message = message
        self.kind = kind
        super().__init__(message)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_validation_error(e: ValidationError, what: str) -> DomainValidationError:
    errors = {
        ".".join(str(part) for part in err["loc"]) or "__root__": err["msg"]
        for err in e.errors()
    }
    return DomainValidationError(f"Invalid {what}: {', '.join(sorted(errors))}", errors)


def _server_entity(raw: Any) -> Dict[str, Any]:
    """Server entity as a dict keyed like our models. Mongo-style _id is accepted as id."""
    if not isinstance(raw, Mapping):
        raise ApiResponseError("Unexpected response from server", 200)
    data = {k: v for k, v in raw.items() if k not in ("_id", "__v")}
    if "id" not in data and "_id" in raw:
        data["id"] = str(raw["_id"])
    return data


class DomainStateContainer:
    """
    Explicit application state. Owned by the composition root and handed to consumers.
    Only this object writes to the fallback store; display reads go through memory.
    """

    def __init__(
        self,
        gateway: Gateway,
        store: FallbackStore,
        notifications: NotificationCenter,
        confirmer: Confirmer,
        *,
        metrics: Optional[MetricsCollector] = None,
        rbac_service: Optional[RBACService] = None,
        clock: Clock = _utcnow,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self.notifications = notifications
        self._confirmer = confirmer
        self.metrics = metrics or MetricsCollector()
        self._rbac = rbac_service or RBACService()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._listeners: List[StateListener] = []
        self.session = Session()
        self.offline = False
        self._state: Dict[str, Any] = {}
        self._reset_state()

    # --- State access ---

    def _reset_state(self) -> None:
        self._state = {key: [] for key in COLLECTIONS}
        self._state[ESTABLISHMENT_KEY] = None

    def collection(self, key: str) -> List[Any]:
        get_collection(key)
        return list(self._state[key])

    @property
    def users(self) -> List[User]:
        return self.collection(USERS)

    @property
    def delivery_records(self) -> List[Any]:
        return self.collection(DELIVERY_RECORDS)

    @property
    def incidents(self) -> List[Any]:
        return self.collection(INCIDENTS)

    @property
    def establishment_info(self) -> Optional[EstablishmentInfo]:
        return self._state[ESTABLISHMENT_KEY]

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    def now(self) -> datetime:
        return self._clock()

    def find(self, key: str, item_id: str) -> Optional[Any]:
        for item in self._state[key]:
            if item.id == item_id:
                return item
        return None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """listener(key) runs after each state replacement. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, key: str, value: Any) -> None:
        # One assignment per resolved operation
        self._state[key] = value
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception as e:
                self._logger.error("state_listener_failed", extra={"collection": key, "error": str(e)})

    def visible_users(self, active_only: bool = False) -> List[User]:
        """Users of the current company. UI filtering only; the backend must enforce isolation."""
        return TenantContext.visible_users(self._state[USERS], self.current_user, active_only)

    async def confirm(self, message: str) -> bool:
        return bool(await self._confirmer(message))

    # --- Store hydration ---

    def _hydrate(self, key: str, raw: Any) -> Any:
        if key == ESTABLISHMENT_KEY:
            if not isinstance(raw, Mapping):
                return EstablishmentInfo()
            return EstablishmentInfo.model_validate(raw)
        spec = get_collection(key)
        items = []
        for item in raw or []:
            try:
                items.append(spec.model.model_validate(item))
            except ValidationError as e:
                self._logger.warning(
                    "fallback_item_invalid",
                    extra={"collection": key, "error": str(e)},
                )
        return items

    def _dehydrate(self, key: str, value: Any) -> Any:
        if key == ESTABLISHMENT_KEY:
            return value.to_wire() if value is not None else None
        return [item.to_wire() for item in value]

    async def _mirror(self, key: str) -> None:
        await self._store.set_json(key, self._dehydrate(key, self._state[key]))

    async def _read_local(self, key: str) -> Any:
        return self._hydrate(key, await self._store.get_json(key))

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    # --- Generic mutation protocol ---

    async def mutate_with_fallback(
        self,
        key: str,
        *,
        server_call: Optional[Callable[[], Awaitable[Any]]],
        local_op: Callable[[Any], Tuple[Any, Any]],
        reconcile: Optional[Callable[[Any, Any], Tuple[Any, Any]]] = None,
        success: Optional[Callable[[Any], Optional[NotificationTemplate]]] = None,
        failure_title: str = "Operation failed",
    ) -> MutationResult:
        """
        Run one mutation on collection key (or the establishment profile).

        server_call: the gateway request, or None for client-only collections.
        local_op(persisted) -> (new persisted value, result): applied to the raw store value.
        reconcile(current state, response) -> (new state, result): applied to memory on success.
            Required whenever server_call is given.
        success(result): the notification emitted after a remote, fallback or local success.
        """
        if server_call is not None and reconcile is None:
            raise ValueError("reconcile is required for a server-backed mutation")
        started = time.perf_counter()
        correlation_token = correlation_id_ctx.set(uuid.uuid4().hex)
        try:
            result = await self._run_mutation(key, server_call, local_op, reconcile, failure_title)
        finally:
            correlation_id_ctx.reset(correlation_token)

        counter = _OUTCOME_COUNTERS.get(result.outcome)
        if counter is not None:
            self.metrics.increment(counter, collection=key)
        self.metrics.observe_latency(
            "mutation_latency_ms", (time.perf_counter() - started) * 1000, operation=key
        )
        if result.ok and success is not None:
            template = success(result.value)
            if template is not None:
                self.notifications.emit(template)
        return result

    async def _run_mutation(self, key, server_call, local_op, reconcile, failure_title) -> MutationResult:
        async with self._lock_for(key):
            try:
                result = await self._mutate_locked(key, server_call, local_op, reconcile)
            except SessionExpiredError:
                await self.teardown_session()
                self.notifications.error("Session expired", "Please sign in again.")
                result = MutationResult(MutationOutcome.UNAUTHORIZED)
            except ApiResponseError as e:
                self.notifications.error(failure_title, e.message)
                result = MutationResult(MutationOutcome.REJECTED)
            except DomainError as e:
                self.notifications.warning(failure_title, e.message)
                result = MutationResult(MutationOutcome.REJECTED)
            except ValidationError as e:
                self._logger.warning("mutation_invalid_data", extra={"collection": key, "error": str(e)})
                self.notifications.error(failure_title, "Unexpected data from server.")
                result = MutationResult(MutationOutcome.REJECTED)
            except Exception as e:
                category = FailureClassifier.classify(e)
                self._logger.exception(
                    "mutation_failed",
                    extra={"collection": key, "failure_category": category.value, "error": str(e)},
                )
                self.metrics.increment("mutation_failure", category=category.value)
                self.notifications.error(failure_title, "An unexpected error occurred.")
                result = MutationResult(MutationOutcome.FAILED)
        return result

    async def _mutate_locked(self, key, server_call, local_op, reconcile) -> MutationResult:
        if server_call is not None:
            try:
                response = await server_call()
            except GatewayUnavailableError as e:
                self._logger.warning(
                    "mutation_fallback",
                    extra={"collection": key, "error": e.message},
                )
                value = await self._apply_locally(key, local_op)
                self.offline = True
                return MutationResult(MutationOutcome.FALLBACK, value)
            new_state, value = reconcile(self._state[key], response)
            self._set_state(key, new_state)
            await self._mirror(key)
            self._logger.info("mutation_remote", extra={"collection": key})
            return MutationResult(MutationOutcome.REMOTE, value)

        value = await self._apply_locally(key, local_op)
        self._logger.info("mutation_local", extra={"collection": key})
        return MutationResult(MutationOutcome.LOCAL, value)

    async def _apply_locally(self, key: str, local_op: Callable[[Any], Tuple[Any, Any]]) -> Any:
        persisted = await self._store.get_json(key)
        new_persisted, value = local_op(persisted)
        await self._store.set_json(key, new_persisted)
        self._set_state(key, self._hydrate(key, new_persisted))
        return value

    # --- Guards ---

    def _require(self, action: str) -> User:
        user = self.current_user
        if user is None:
            raise _Denied("You must sign in first.")
        try:
            self._rbac.check_permission(user.role, action)
        except AuthorizationError as e:
            self._logger.info(
                "permission_denied",
                extra={"user_id": user.id, "role": user.role.value, "action": action, "error": e.message},
            )
            raise _Denied("You do not have permission to perform this action.") from e
        return user

    def authorize(self, action: str, title: str) -> Optional[User]:
        """Current user when allowed; otherwise the denial is notified and None returned."""
        try:
            return self._require(action)
        except _Denied as denied:
            self._report_denied(title, denied)
            return None

    def _report_denied(self, title: str, denied: _Denied) -> None:
        self.notifications.dispatch(denied.kind, title, denied.message)

    def report_invalid(self, title: str, error: DomainValidationError) -> None:
        fields = "; ".join(f"{name}: {msg}" for name, msg in sorted(error.errors.items()))
        self.notifications.warning(title, fields or error.message)

    def _active_admins(self) -> List[User]:
        return [u for u in self.visible_users() if u.is_admin and u.is_active]

    def _guard_same_company(self, actor: User, target: User) -> None:
        try:
            TenantContext.validate_access(target.company_id, actor.company_id)
        except TenantIsolationError as e:
            self._logger.warning("company_mismatch", extra={"user_id": actor.id, "target_id": target.id})
            raise _Denied("This user belongs to another company.") from e

    def _guard_user_delete(self, actor: User, target: User) -> None:
        self._guard_same_company(actor, target)
        if target.id == actor.id:
            raise _Denied("You cannot delete your own user.", NotificationType.WARNING)
        if target.is_admin and len(self._active_admins()) <= 1:
            raise _Denied("The last administrator cannot be deleted.", NotificationType.WARNING)

    def _guard_user_update(self, actor: User, target: User, patch: Mapping[str, Any]) -> None:
        self._guard_same_company(actor, target)
        if target.id == actor.id:
            if "role" in patch and Role(patch["role"]) != target.role:
                raise _Denied("You cannot change your own role.", NotificationType.WARNING)
            if "is_active" in patch and bool(patch["is_active"]) != target.is_active:
                raise _Denied("You cannot deactivate your own user.", NotificationType.WARNING)
        if target.is_admin and "role" in patch and Role(patch["role"]) != Role.ADMINISTRATOR:
            if len(self._active_admins()) <= 1:
                raise _Denied("The last administrator cannot be demoted.", NotificationType.WARNING)

    def _stamp(self, spec: CollectionSpec, data: Dict[str, Any], user: User) -> Dict[str, Any]:
        if not issubclass(spec.model, TracedRecord):
            return data
        stamped = dict(data)
        stamped.setdefault("user_id", user.id)
        stamped.setdefault("registered_by", user.name)
        stamped.setdefault("registered_by_id", user.id)
        stamped.setdefault("registered_at", self._clock())
        return stamped

    # --- Collection operations ---

    async def add(self, key: str, data: Mapping[str, Any]) -> Optional[Any]:
        """Create an entity. Returns it (server or local copy), or None on any failure."""
        spec = get_collection(key)
        title = f"Could not save {spec.label.lower()}"
        fields = spec.model.field_names(data)
        try:
            user = self._require(rbac.MANAGE_USERS if key == USERS else rbac.CREATE)
            if key == USERS:
                validate_user_input(fields)
            fields = self._stamp(spec, fields, user)
            try:
                candidate = spec.model.model_validate({**fields, "id": fields.get("id") or "pending"})
            except ValidationError as e:
                raise _from_validation_error(e, spec.label.lower()) from e
        except _Denied as denied:
            self._report_denied(title, denied)
            return None
        except DomainValidationError as e:
            self.report_invalid(title, e)
            return None

        payload = candidate.to_wire()
        payload.pop("id", None)
        if key == USERS and fields.get("password"):
            payload["password"] = fields["password"]

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            entity = candidate.transition(id=new_local_id())
            return [*(persisted or []), entity.to_wire()], entity

        def reconcile(current: List[Any], response: Any) -> Tuple[Any, Any]:
            entity = spec.model.model_validate(_server_entity(response))
            return [*current, entity], entity

        result = await self.mutate_with_fallback(
            key,
            server_call=None if spec.client_only else (lambda: self._gateway.request("POST", spec.api_path, payload)),
            local_op=local_op,
            reconcile=reconcile,
            success=lambda entity: self._created_template(spec, entity),
            failure_title=title,
        )
        return result.value if result.ok else None

    async def delete(
        self,
        key: str,
        item_id: str,
        *,
        confirm_message: Optional[str] = None,
        success: Optional[Callable[[Any], Optional[NotificationTemplate]]] = None,
    ) -> bool:
        """Delete after confirmation. A refused confirmation performs no I/O and returns False."""
        spec = get_collection(key)
        title = f"Could not delete {spec.label.lower()}"
        target = self.find(key, item_id)
        try:
            actor = self._require(rbac.MANAGE_USERS if key == USERS else rbac.DELETE)
            if target is None:
                raise _Denied(f"{spec.label} {item_id} was not found.", NotificationType.WARNING)
            if key == USERS:
                self._guard_user_delete(actor, target)
        except _Denied as denied:
            self._report_denied(title, denied)
            return False

        if not await self.confirm(confirm_message or f"Delete this {spec.label.lower()}? This cannot be undone."):
            self._logger.info("delete_cancelled", extra={"collection": key, "item_id": item_id})
            return False

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            return [item for item in (persisted or []) if item.get("id") != item_id], target

        def reconcile(current: List[Any], response: Any) -> Tuple[Any, Any]:
            return [item for item in current if item.id != item_id], target

        result = await self.mutate_with_fallback(
            key,
            server_call=None if spec.client_only else (lambda: self._gateway.request("DELETE", spec.item_path(item_id))),
            local_op=local_op,
            reconcile=reconcile,
            success=success or (lambda entity: self._deleted_template(spec, entity)),
            failure_title=title,
        )
        return result.ok

    async def update(self, key: str, item_id: str, patch: Mapping[str, Any]) -> Optional[Any]:
        """Edit a user in place. Other records are never edited; incidents go through the incident manager."""
        spec = get_collection(key)
        title = f"Could not update {spec.label.lower()}"
        if key != USERS:
            self.notifications.warning(title, f"{spec.label} entries cannot be edited.")
            return None
        changes = spec.model.field_names(patch)
        target = self.find(key, item_id)
        try:
            actor = self._require(rbac.MANAGE_USERS)
            if target is None:
                raise _Denied(f"User {item_id} was not found.", NotificationType.WARNING)
            validate_user_input(changes, is_edit=True)
            self._guard_user_update(actor, target, changes)
            try:
                merged = User.model_validate({**target.model_dump(), **changes, "id": item_id})
            except ValidationError as e:
                raise _from_validation_error(e, "user") from e
        except _Denied as denied:
            self._report_denied(title, denied)
            return None
        except DomainValidationError as e:
            self.report_invalid(title, e)
            return None

        wire = merged.to_wire()
        payload = {
            alias: wire[alias]
            for alias in (User.model_fields[name].alias or name for name in changes if name in User.model_fields)
            if alias in wire
        }

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            items = list(persisted or [])
            for index, item in enumerate(items):
                if item.get("id") == item_id:
                    items[index] = {**item, **wire}
                    return items, merged
            raise EntityNotFoundError(f"User {item_id} is not stored locally")

        def reconcile(current: List[Any], response: Any) -> Tuple[Any, Any]:
            entity = merged
            if isinstance(response, Mapping):
                entity = User.model_validate({**wire, **_server_entity(response)})
            return [entity if item.id == item_id else item for item in current], entity

        result = await self.mutate_with_fallback(
            key,
            server_call=lambda: self._gateway.request("PUT", spec.item_path(item_id), payload),
            local_op=local_op,
            reconcile=reconcile,
            success=lambda user: UserNotifications.updated(user.name),
            failure_title=title,
        )
        if result.ok and self.current_user is not None and result.value.id == self.current_user.id:
            self.session = self.session.transition(current_user=result.value)
            await self._store.set_json(CURRENT_USER_KEY, result.value.to_wire())
        return result.value if result.ok else None

    async def update_establishment_info(self, info: Mapping[str, Any]) -> Optional[EstablishmentInfo]:
        title = "Could not save establishment"
        fields = EstablishmentInfo.field_names(info)
        try:
            self._require(rbac.MANAGE_ESTABLISHMENT)
            validate_establishment_info(fields)
            try:
                candidate = EstablishmentInfo.model_validate(fields)
            except ValidationError as e:
                raise _from_validation_error(e, "establishment info") from e
        except _Denied as denied:
            self._report_denied(title, denied)
            return None
        except DomainValidationError as e:
            self.report_invalid(title, e)
            return None

        payload = candidate.to_wire()

        def local_op(persisted: Any) -> Tuple[Any, Any]:
            merged = {**(persisted or {}), **payload}
            return merged, EstablishmentInfo.model_validate(merged)

        def reconcile(current: Any, response: Any) -> Tuple[Any, Any]:
            saved = EstablishmentInfo.model_validate(
                {**payload, **_server_entity(response)} if response is not None else payload
            )
            return saved, saved

        result = await self.mutate_with_fallback(
            ESTABLISHMENT_KEY,
            server_call=lambda: self._gateway.request("POST", ESTABLISHMENT_PATH, payload),
            local_op=local_op,
            reconcile=reconcile,
            success=lambda saved: NotificationTemplate(
                NotificationType.SUCCESS, "Establishment saved", "Establishment details have been updated."
            ),
            failure_title=title,
        )
        return result.value if result.ok else None

    async def load_collection(self, key: str) -> List[Any]:
        """Lazy load. Remote collections fall back to the store when the backend is unreachable."""
        spec = get_collection(key)
        async with self._lock_for(key):
            if spec.client_only:
                self._set_state(key, await self._read_local(key))
                return list(self._state[key])
            try:
                raw = await self._gateway.request("GET", spec.api_path)
                items = [spec.model.model_validate(_server_entity(item)) for item in raw or []]
            except GatewayUnavailableError:
                self._logger.warning("load_fallback", extra={"collection": key})
                self._set_state(key, await self._read_local(key))
                self.offline = True
            except SessionExpiredError:
                await self.teardown_session()
                self.notifications.error("Session expired", "Please sign in again.")
            except (ApplicationError, ValidationError) as e:
                message = e.message if isinstance(e, ApplicationError) else "Unexpected data from server."
                self.notifications.error(f"Could not load {spec.label.lower()}s", message)
            else:
                self._set_state(key, items)
                await self._mirror(key)
        return list(self._state[key])

    # --- Session ---

    async def teardown_session(self) -> None:
        """Clear token, current user and every session-scoped collection. Safe to call twice."""
        self._gateway.clear_token()
        self.session = Session()
        self.offline = False
        self._reset_state()
        company_id_ctx.set(None)
        await self._store.delete(TOKEN_KEY)
        await self._store.delete(CURRENT_USER_KEY)
        self._logger.info("session_teardown")
        for listener in list(self._listeners):
            try:
                listener("session")
            except Exception as e:
                self._logger.error("state_listener_failed", extra={"collection": "session", "error": str(e)})

    async def _start_session(self, token: str, user: User, offline: bool = False) -> None:
        self._gateway.set_token(token)
        self.session = Session(token=token, current_user=user, offline=offline)
        company_id_ctx.set(user.company_id)
        await self._store.set_json(TOKEN_KEY, token)
        await self._store.set_json(CURRENT_USER_KEY, user.to_wire())

    async def bootstrap(self) -> bool:
        """
        Restore the session from the stored token. A stale token is torn down silently.
        When the backend is unreachable, the last validated user is restored offline.
        """
        token = await self._store.get_json(TOKEN_KEY)
        if not token:
            return False
        self._gateway.set_token(token)
        try:
            raw_user = await self._gateway.request("GET", AUTH_PATH)
            user = User.model_validate(_server_entity(raw_user))
        except GatewayUnavailableError:
            cached = await self._store.get_json(CURRENT_USER_KEY)
            if not cached:
                self._logger.info("bootstrap_no_cached_user")
                await self.teardown_session()
                return False
            await self._start_session(token, User.model_validate(cached), offline=True)
            self._logger.warning("session_restored_offline", extra={"user_id": self.current_user.id})
        except (ApplicationError, ValidationError) as e:
            self._logger.info("bootstrap_token_rejected", extra={"error": str(e)})
            await self.teardown_session()
            return False
        else:
            await self._start_session(token, user)
            self._logger.info("session_restored", extra={"user_id": user.id})
        await self.load_initial_data()
        return True

    async def load_initial_data(self) -> None:
        """
        Users, establishment and delivery records fetched together. Either all three come
        from the server or all three from the store; never a mix.
        """
        if self.current_user is None:
            return
        results = await asyncio.gather(
            self._gateway.request("GET", COLLECTIONS[USERS].api_path),
            self._gateway.request("GET", ESTABLISHMENT_PATH),
            self._gateway.request("GET", COLLECTIONS[DELIVERY_RECORDS].api_path),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        remote: Optional[Dict[str, Any]] = None
        if not failures:
            try:
                raw_users, raw_establishment, raw_deliveries = results
                remote = {
                    USERS: [User.model_validate(_server_entity(u)) for u in raw_users or []],
                    ESTABLISHMENT_KEY: (
                        EstablishmentInfo.model_validate(_server_entity(raw_establishment))
                        if raw_establishment
                        else EstablishmentInfo()
                    ),
                    DELIVERY_RECORDS: [
                        COLLECTIONS[DELIVERY_RECORDS].model.model_validate(_server_entity(d))
                        for d in raw_deliveries or []
                    ],
                }
            except (ApplicationError, ValidationError, TypeError) as e:
                failures = [e]

        if any(isinstance(f, SessionExpiredError) for f in failures):
            await self.teardown_session()
            self.notifications.error("Session expired", "Please sign in again.")
            return

        if remote is not None:
            for key, value in remote.items():
                self._set_state(key, value)
                await self._mirror(key)
            self.offline = False
            self._logger.info("initial_load_remote")
        else:
            for key in (USERS, ESTABLISHMENT_KEY, DELIVERY_RECORDS):
                self._set_state(key, await self._read_local(key))
            categories = sorted({FailureClassifier.classify(f).value for f in failures})
            self._logger.warning("initial_load_fallback", extra={"failure_categories": categories})
            if any(isinstance(f, GatewayUnavailableError) for f in failures):
                self.offline = True
                self.notifications.warning(
                    "Working offline", "The server is unreachable. Showing locally saved data."
                )
            else:
                first = failures[0]
                message = first.message if isinstance(first, ApplicationError) else "Unexpected data from server."
                self.notifications.error("Could not load data", message)

        for key, spec in COLLECTIONS.items():
            if spec.client_only:
                self._set_state(key, await self._read_local(key))

    # --- Authentication ---

    async def _auth_call(self, title: str, path: str, body: Mapping[str, Any]) -> Optional[Any]:
        try:
            return await self._gateway.request("POST", path, dict(body))
        except GatewayUnavailableError:
            self.notifications.error(title, "The server is unreachable. Try again later.")
        except SessionExpiredError:
            self.notifications.error(title, "Invalid email or password.")
        except ApiResponseError as e:
            self.notifications.error(title, e.message)
        return None

    async def _accept_auth_response(self, title: str, response: Any) -> bool:
        try:
            token = response["token"]
            user = User.model_validate(_server_entity(response["user"]))
        except (KeyError, TypeError, ValidationError, ApplicationError) as e:
            self._logger.error("auth_response_invalid", extra={"error": str(e)})
            self.notifications.error(title, "Unexpected response from server.")
            return False
        await self._start_session(token, user)
        await self.load_initial_data()
        self.notifications.success("Welcome", f"Signed in as {user.name}.")
        return True

    async def login(self, email: str, password: str) -> bool:
        title = "Sign-in failed"
        email_error = validate_email(email)
        if email_error or not password:
            self.notifications.warning(title, email_error or "Password is required")
            return False
        response = await self._auth_call(title, LOGIN_PATH, {"email": email.strip(), "password": password})
        if response is None:
            return False
        return await self._accept_auth_response(title, response)

    async def register(self, details: Mapping[str, Any]) -> bool:
        """Create an account (and its company) and sign in with it."""
        title = "Registration failed"
        fields = User.field_names(details)
        try:
            validate_user_input({k: v for k, v in fields.items() if k != "role"})
        except DomainValidationError as e:
            self.report_invalid(title, e)
            return False
        response = await self._auth_call(title, REGISTER_PATH, details)
        if response is None:
            return False
        return await self._accept_auth_response(title, response)

    async def logout(self) -> None:
        await self.teardown_session()
        self.notifications.info("Signed out", "Your session has been closed.")

    async def forgot_password(self, email: str) -> bool:
        title = "Password recovery failed"
        email_error = validate_email(email)
        if email_error:
            self.notifications.warning(title, email_error)
            return False
        response = await self._auth_call(title, FORGOT_PASSWORD_PATH, {"email": email.strip()})
        if response is None:
            return False
        self.notifications.info(
            "Check your email", "If the address is registered you will receive a reset link."
        )
        return True

    async def reset_password(self, reset_token: str, password: str) -> bool:
        title = "Password reset failed"
        if not (PASSWORD_MIN <= len(password) <= PASSWORD_MAX):
            self.notifications.warning(
                title, f"Password must have between {PASSWORD_MIN} and {PASSWORD_MAX} characters"
            )
            return False
        response = await self._auth_call(
            title, f"{RESET_PASSWORD_PATH}/{reset_token}", {"password": password}
        )
        if response is None:
            return False
        self.notifications.success("Password updated", "You can now sign in with your new password.")
        return True

    # --- Notification templates ---

    @staticmethod
    def _created_template(spec: CollectionSpec, entity: Any) -> NotificationTemplate:
        if spec.key == USERS:
            return UserNotifications.created(entity.name)
        return NotificationTemplate(
            NotificationType.SUCCESS, f"{spec.label} saved", f"{spec.label} registered successfully."
        )

    @staticmethod
    def _deleted_template(spec: CollectionSpec, entity: Any) -> NotificationTemplate:
        if spec.key == USERS and entity is not None:
            return UserNotifications.deleted(entity.name)
        return NotificationTemplate(
            NotificationType.SUCCESS, f"{spec.label} deleted", f"{spec.label} has been deleted."
        )

    def metrics_snapshot(self) -> Dict[str, Dict[str, float]]:
        """Mutation outcome counters per collection."""
        return {key: self.metrics.mutation_outcomes(key) for key in (*COLLECTIONS, ESTABLISHMENT_KEY)}
