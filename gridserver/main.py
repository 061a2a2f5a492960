"""Entry point for the GridFS bus server.
Opens the document store, prepares buckets and serves the bus address over gRPC.
"""

import asyncio
import signal
import sys

from common.constants import GRPC_SHUTDOWN_GRACE_SECONDS
from common.logging_config import setup_logging
from gridserver.config import ServerConfig, load_config
from gridserver.context import ServerContext
from gridserver.dispatcher import Dispatcher
from gridserver.grpc_server import create_server

logger = setup_logging('gridserver')
setup_logging('store')


async def serve(config: ServerConfig, ctx: ServerContext) -> None:
    """
    Start and run gRPC server.

    Args:
        config: Loaded server configuration
        ctx: Initialized server context
    """
    server = create_server(Dispatcher(ctx), config.address)
    port = server.add_insecure_port(config.listen_addr)

    logger.info(f"Starting GridFS server for {config.address} on {config.host}:{port}")
    await server.start()

    async def shutdown(sig=None):
        if sig:
            logger.info(f"Received signal {sig}, shutting down...")
        else:
            logger.info("Shutting down...")
        await server.stop(GRPC_SHUTDOWN_GRACE_SECONDS)
        logger.info("GridFS server stopped")

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    try:
        await server.wait_for_termination()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        await shutdown()


def main() -> None:
    """Bootstrap the GridFS server."""
    logger.info("Initializing GridFS server...")

    config = load_config()
    setup_logging('gridserver', config.log_level)
    setup_logging('store', config.log_level)
    logger.info(
        f"Config: address={config.address}, db_path={config.db_path}, "
        f"pool_size={config.pool_size}, buckets={config.buckets}"
    )

    ctx = ServerContext.init(config)
    if not ctx.available:
        logger.warning("Document store unavailable, every store request will fail")

    try:
        asyncio.run(serve(config, ctx))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise
    finally:
        ctx.shutdown()
        logger.info("GridFS server shutdown complete")


if __name__ == "__main__":
    main()
