"""Server lifecycle commands: create (and bootstrap) or delete OpenStack servers."""

from stackboot.commands.server.create import register_create_target
from stackboot.commands.server.delete import register_delete_target


def register_server_command(subparsers):
    """Register the 'server' command with create/delete action subparsers."""
    server_parser = subparsers.add_parser("server", help="Manage OpenStack servers")
    action_subparsers = server_parser.add_subparsers(dest="action", required=True)

    register_create_target(action_subparsers)
    register_delete_target(action_subparsers)
