import sys
import logging

import setproctitle

from miniblog.config import effective_settings as config
from miniblog.log import setup_logging
from miniblog.services.users import generate_credentials, hash_password

log = logging.getLogger("console")

USAGE = """Usage:
  miniblog                               Start the web server.
  miniblog hash-password <password> [salt]
                                         Print a password hash for appsettings.json.
"""


def hash_password_command(args) -> int:
    """
    Prints the 'user' section values for a password.

    :param args: The password, optionally followed by an existing base64 salt.
    :return int: The process exit code.
    """
    if not args:
        print(USAGE, file=sys.stderr)
        return 2
    if len(args) > 1:
        password_hash, salt = hash_password(args[0], args[1], config.PASSWORD_HASH_ITERATIONS), args[1]
    else:
        password_hash, salt = generate_credentials(args[0], config.PASSWORD_HASH_ITERATIONS)
    print(f'"password": "{password_hash}",')
    print(f'"salt": "{salt}"')
    return 0


def serve() -> None:
    # Imported here so one-off commands don't build the web stack.
    from miniblog.web.server import run
    from miniblog.web.startup import create_app

    setproctitle.setproctitle("Miniblog - ASGI Server")
    app = create_app(config)
    run(app, config)


def main() -> None:
    """The main entry point for the console application."""
    setup_logging(logging.INFO)

    if len(sys.argv) > 1:
        command, args = sys.argv[1].lower(), sys.argv[2:]
        if command == "hash-password":
            sys.exit(hash_password_command(args))
        if command in ("help", "-h", "--help"):
            print(USAGE)
            return
        log.error(f"Unknown command '{command}'.")
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    serve()


if __name__ == "__main__":
    main()
