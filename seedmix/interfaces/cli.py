import argparse
import sys
import logging
import signal
from typing import List, Optional

from seedmix.crosscutting.config import ConfigError, get_settings_manager, setup_config
from seedmix.crosscutting.logging import setup_logging
from seedmix.infrastructure.oauth import OAuthClient
from seedmix.interfaces.http import HTTPServer


class CLI:
    """Command Line Interface for SeedMix."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='seedmix',
            description='Spotify recommendations seeded from your top tracks'
        )
        parser.add_argument(
            '--config-dir',
            help='Directory holding .env / config.json (default: current directory)'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        serve_parser = subparsers.add_parser('serve', help='Run the web interface')
        serve_parser.add_argument(
            '--host',
            default='localhost',
            help='Interface to bind (default: localhost)'
        )
        serve_parser.add_argument(
            '--port',
            type=int,
            default=3000,
            help='Port to listen on (default: 3000)'
        )
        serve_parser.add_argument(
            '--debug',
            action='store_true',
            help='Run Flask in debug mode'
        )
        serve_parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='INFO',
            help='Set logging level'
        )
        serve_parser.add_argument(
            '--log-file',
            default=None,
            help='Also write JSON logs to this file'
        )

        subparsers.add_parser('auth-url', help='Print the Spotify authorization URL')
        subparsers.add_parser('check-config', help='Show which settings are present')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger = logging.getLogger(__name__)
            logger.warning(f"Received signal {signum}, shutting down...")
            sys.exit(130)  # Standard exit code for signal termination

        signal.signal(signal.SIGTERM, signal_handler)

    def _serve(self, args: argparse.Namespace) -> int:
        """Run the HTTP server until interrupted."""
        setup_logging(args.log_level, args.log_file)
        self._setup_signal_handlers()
        server = HTTPServer(host=args.host, port=args.port, debug=args.debug,
                            settings=get_settings_manager())
        server.run()
        return 0

    def _print_auth_url(self, args: argparse.Namespace) -> int:
        """Print the authorization URL the login button redirects to."""
        oauth = OAuthClient.from_settings(get_settings_manager())
        print(oauth.authorize_url())
        return 0

    def _check_config(self, args: argparse.Namespace) -> int:
        """Print configuration presence without secret values."""
        summary = get_settings_manager().get_config_summary()

        print(f"Config directory: {summary['config_dir']}")
        print(f"Redirect URI: {summary['redirect_uri'] or '-'}")
        print(f"Playlist prefix: {summary['playlist_prefix']}")
        print(f"Scopes: {' '.join(summary['spotify_scopes'])}")
        print("-" * 50)
        for key, present in summary['validation'].items():
            print(f"{key}: {'OK' if present else 'MISSING'}")

        required = ['spotify_client_id', 'spotify_client_secret', 'spotify_redirect_uri']
        return 0 if all(summary['validation'][key] for key in required) else 1

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the exit code."""
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return 1

        if args.config_dir:
            setup_config(args.config_dir)

        try:
            if args.command == 'serve':
                return self._serve(args)
            if args.command == 'auth-url':
                return self._print_auth_url(args)
            if args.command == 'check-config':
                return self._check_config(args)
        except ConfigError as e:
            logging.getLogger(__name__).error(f"Configuration error: {e}")
            print(f"Configuration error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            logging.getLogger(__name__).warning("Operation cancelled by user")
            return 130

        self.parser.print_help()
        return 1


def main():
    """Main entry point."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
