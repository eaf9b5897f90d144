"""
Main entry point untuk zkatom.

    python -m zkatom serve           HTTP server untuk ATOM_PATH
    python -m zkatom get             print value dan version
    python -m zkatom reset '<value>' reset value (Python literal)
"""

import argparse
import ast
import asyncio
import logging
import sys

from .atom import create_atom
from .coordination import connect
from .errors import ZkAtomError
from .server import AtomServer, serve_forever
from .utils.config import Config


def setup_logging():
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(Config.LOG_FILE) if Config.LOG_FILE else logging.NullHandler()
        ]
    )


async def run(args: argparse.Namespace):
    """
    Run command.

    Args:
        args: Parsed arguments (command, path, value)
    """
    client = await connect(Config.COORDINATION_URL, **Config.client_options())
    try:
        atom = await create_atom(client, args.path, retry=Config.retry_policy())
        try:
            if args.command == 'serve':
                server = AtomServer(atom, Config.NODE_HOST, Config.NODE_PORT)
                print(f"\n{'='*60}")
                print(f"  ATOM {args.path}")
                print(f"  Address: http://{Config.NODE_HOST}:{Config.NODE_PORT}")
                print(f"  Coordination: {Config.COORDINATION_URL}")
                print(f"{'='*60}\n")
                await serve_forever(server)
            elif args.command == 'get':
                snapshot = atom.snapshot()
                print(f"{snapshot.value!r} (version {snapshot.version})")
            elif args.command == 'reset':
                value = await atom.reset(ast.literal_eval(args.value))
                print(f"{value!r}")
        finally:
            await atom.close()
    finally:
        await client.close()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Distributed atom on a coordination service')
    parser.add_argument(
        'command',
        choices=['serve', 'get', 'reset'],
        help='Command to run'
    )
    parser.add_argument(
        'value',
        nargs='?',
        help='Python literal for reset'
    )
    parser.add_argument(
        '--path',
        help='Atom node path',
        default=Config.ATOM_PATH
    )

    args = parser.parse_args()
    if args.command == 'reset' and args.value is None:
        parser.error('reset requires a value')

    # Setup logging
    setup_logging()

    # Display configuration
    if args.command == 'serve':
        Config.display()

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nExiting...")
    except (ZkAtomError, ValueError, SyntaxError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
