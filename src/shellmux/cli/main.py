"""shellmux CLI entry point"""

import click

from .command import attach, exec_command, init


@click.group(
    name="shellmux",
    help="shellmux - multi-session terminal multiplexer for remote shells",
)
def main():
    """Main CLI entry point"""
    pass


main.add_command(init)
main.add_command(attach)
main.add_command(exec_command)


if __name__ == "__main__":
    main()
