"""
truthdesk CLI entrypoint.

This module provides the console_script entrypoint for the truthdesk package.
"""


def main():
    """truthdesk CLI entrypoint."""
    from truthdesk.commands import desk_app

    desk_app()


if __name__ == "__main__":
    main()
