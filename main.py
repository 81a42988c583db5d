"""Command-line interface for the user dashboard."""

from __future__ import annotations
import argparse
import logging
import sys
from functools import partial
from getpass import getpass
from typing import Awaitable, Callable, Optional, Sequence

try:
    import anyio
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'anyio' package is required. Execute `pip install -e .` to install dependencies."
    ) from exc

from dashboard.api_client import APIClient, APIError, LoginCredentials, RegisterCredentials
from dashboard.auth import AuthSessionManager
from dashboard.config import ClientSettings, load_client_settings
from dashboard.guards import RedirectIfAuthenticated, RequireAuthenticated, logout_and_redirect
from dashboard.models import User
from dashboard.storage import SessionStore, open_session_store
from dashboard.users import UserListManager
from dashboard.validation import (
    FormValidationError,
    LoginForm,
    RegisterForm,
    UserForm,
    validate_form,
)

logger = logging.getLogger("dashboard.main")

KNOWN_COMMANDS = {"serve", "login", "register", "logout", "whoami", "users"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User dashboard utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the API proxy service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the proxy")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the proxy (default: 8000)",
    )

    login_parser = subparsers.add_parser("login", help="Sign in and store the session locally")
    login_parser.add_argument("--email", required=True, help="Account email address")
    login_parser.add_argument(
        "--password",
        default=None,
        help="Account password (prompted when omitted)",
    )

    register_parser = subparsers.add_parser("register", help="Create an account and sign in")
    register_parser.add_argument("--email", required=True, help="Account email address")
    register_parser.add_argument("--first-name", required=True, help="Given name")
    register_parser.add_argument("--last-name", required=True, help="Family name")
    register_parser.add_argument(
        "--password",
        default=None,
        help="Account password (prompted twice when omitted)",
    )

    subparsers.add_parser("logout", help="Forget the stored session")
    subparsers.add_parser("whoami", help="Show the signed-in user")

    users_parser = subparsers.add_parser("users", help="Manage dashboard users")
    users_sub = users_parser.add_subparsers(dest="users_command", required=True)

    list_parser = users_sub.add_parser("list", help="List one page of users")
    list_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")

    create_parser = users_sub.add_parser("create", help="Create a user")
    create_parser.add_argument("--email", required=True)
    create_parser.add_argument("--first-name", required=True)
    create_parser.add_argument("--last-name", required=True)
    create_parser.add_argument("--job", default=None)

    update_parser = users_sub.add_parser("update", help="Update a user")
    update_parser.add_argument("user_id", type=int)
    update_parser.add_argument("--email", required=True)
    update_parser.add_argument("--first-name", required=True)
    update_parser.add_argument("--last-name", required=True)
    update_parser.add_argument("--job", default=None)

    delete_parser = users_sub.add_parser("delete", help="Delete a user")
    delete_parser.add_argument("user_id", type=int)

    args_list = list(argv) if argv is not None else sys.argv[1:]
    # Bare options such as `--port 9000` belong to the default `serve` command.
    wants_help = any(flag in args_list for flag in ("-h", "--help"))
    if not args_list or (args_list[0] not in KNOWN_COMMANDS and not wants_help):
        args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


class _Navigator:
    """Record navigation requests issued by the route guards."""

    def __init__(self) -> None:
        self.path: Optional[str] = None

    def __call__(self, path: str) -> None:
        logger.debug("Guard redirected to %s", path)
        self.path = path


def _open_store(settings: ClientSettings) -> SessionStore:
    return open_session_store(settings.storage_path)


def _build_client(settings: ClientSettings) -> APIClient:
    return APIClient(settings.api_url, timeout=settings.timeout)


def _serve(*, host: str, port: int) -> None:
    from dashboard.proxy import create_app
    import uvicorn

    logger.info("Starting dashboard proxy on http://%s:%s", host, port)
    app = create_app()
    uvicorn.run(app, host=host, port=port, log_level="info")


def _prompt_for_password(*, confirm: bool) -> tuple[str, str]:
    password = getpass("Password: ")
    confirmation = getpass("Confirm password: ") if confirm else password
    return password, confirmation


def _print_user(user: User) -> None:
    print(f"#{user.id}  {user.full_name} <{user.email}>")


def _already_signed_in(manager: AuthSessionManager) -> bool:
    navigator = _Navigator()
    RedirectIfAuthenticated(manager, navigator).close()
    if navigator.path is None:
        return False
    print(f"Already signed in as {manager.user.email if manager.user else 'unknown user'}.")
    return True


async def _login(settings: ClientSettings, email: str, password: Optional[str]) -> None:
    if password is None:
        password, _ = _prompt_for_password(confirm=False)
    form = validate_form(LoginForm, {"email": email, "password": password})

    async with _build_client(settings) as client:
        manager = AuthSessionManager(client, _open_store(settings))
        manager.initialize()
        if _already_signed_in(manager):
            return
        await manager.login(LoginCredentials(email=form.email, password=form.password))

    print("Signed in.")
    if manager.user is not None:
        _print_user(manager.user)


async def _register(
    settings: ClientSettings,
    *,
    email: str,
    first_name: str,
    last_name: str,
    password: Optional[str],
) -> None:
    if password is None:
        password, confirmation = _prompt_for_password(confirm=True)
    else:
        confirmation = password
    form = validate_form(
        RegisterForm,
        {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "password": password,
            "confirm_password": confirmation,
        },
    )

    async with _build_client(settings) as client:
        manager = AuthSessionManager(client, _open_store(settings))
        manager.initialize()
        if _already_signed_in(manager):
            return
        await manager.register(
            RegisterCredentials(
                email=form.email,
                password=form.password,
                first_name=form.first_name,
                last_name=form.last_name,
            )
        )

    print("Account registered and signed in.")
    if manager.user is not None:
        _print_user(manager.user)


async def _logout(settings: ClientSettings) -> None:
    async with _build_client(settings) as client:
        manager = AuthSessionManager(client, _open_store(settings))
        manager.initialize()
        logout_and_redirect(manager, _Navigator())
    print("Signed out.")


async def _with_session(
    settings: ClientSettings,
    action: Callable[[AuthSessionManager, APIClient], Awaitable[None]],
) -> bool:
    async with _build_client(settings) as client:
        manager = AuthSessionManager(client, _open_store(settings))
        manager.initialize()
        guard = RequireAuthenticated(manager, _Navigator())
        try:
            if not guard.status.is_ready:
                print(
                    "Not signed in. Run `python main.py login --email <email>` first.",
                    file=sys.stderr,
                )
                return False
            await action(manager, client)
            return True
        finally:
            guard.close()


async def _whoami(manager: AuthSessionManager, _client: APIClient) -> None:
    if manager.user is not None:
        _print_user(manager.user)


def _print_users(manager: UserListManager) -> None:
    pagination = manager.pagination
    if not manager.users:
        print("No users found.")
    else:
        print(f"{'ID':>14}  {'Name':<28}  Email")
        print("-" * 72)
        for user in manager.users:
            print(f"{user.id:>14}  {user.full_name:<28}  {user.email}")
    print(
        f"Page {pagination.page} of {pagination.total_pages} "
        f"({pagination.total} user(s), {pagination.per_page} per page)"
    )


def _users_action(args: argparse.Namespace) -> Callable[[AuthSessionManager, APIClient], Awaitable[None]]:
    async def _run(_manager: AuthSessionManager, client: APIClient) -> None:
        users = UserListManager(client, initial_page=getattr(args, "page", 1))
        command = args.users_command

        if command == "list":
            await users.activate()
            if users.error:
                raise APIError(users.error)
            _print_users(users)
            return

        if command == "delete":
            await users.delete(args.user_id)
            print(f"Deleted user #{args.user_id}.")
            return

        form = validate_form(
            UserForm,
            {
                "email": args.email,
                "first_name": args.first_name,
                "last_name": args.last_name,
                "job": args.job,
            },
        )
        if command == "create":
            created = await users.create(form.to_payload())
            print("Created user:")
            _print_user(created)
        elif command == "update":
            updated = await users.update(args.user_id, form.to_payload())
            print(f"Updated user #{args.user_id}: {updated.full_name} <{updated.email}>")

    return _run


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(host=args.host, port=args.port)
        return

    settings = load_client_settings()

    try:
        if args.command == "login":
            anyio.run(_login, settings, args.email, args.password)
        elif args.command == "register":
            anyio.run(
                partial(
                    _register,
                    settings,
                    email=args.email,
                    first_name=args.first_name,
                    last_name=args.last_name,
                    password=args.password,
                )
            )
        elif args.command == "logout":
            anyio.run(_logout, settings)
        elif args.command == "whoami":
            if not anyio.run(_with_session, settings, _whoami):
                raise SystemExit(1)
        elif args.command == "users":
            if not anyio.run(_with_session, settings, _users_action(args)):
                raise SystemExit(1)
    except FormValidationError as exc:
        for field, message in exc.errors.items():
            print(f"{field}: {message}", file=sys.stderr)
        raise SystemExit(1) from exc
    except APIError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
