"""gRPC transport for the GridFS bus address."""

import grpc
from grpc import aio

from common.constants import (
    CONTINUATION_KEY,
    CONTINUE_METHOD,
    DISPATCH_METHOD,
    REPLY_KIND_KEY,
    SAVE_CHUNK_METHOD,
)
from common.logging_config import get_logger
from common.protocol import Reply
from gridserver.dispatcher import Action, Dispatcher

logger = get_logger(__name__)


class GridFSServicer:
    """
    gRPC service for one bus address.

    Every method is unary: raw request bytes in, raw reply bytes out. The
    reply kind and any continuation handle travel as trailing metadata.
    """

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    def _finish(self, reply: Reply, context: grpc.aio.ServicerContext) -> bytes:
        metadata = [(REPLY_KIND_KEY, reply.kind)]
        if reply.continuation is not None:
            metadata.append((CONTINUATION_KEY, reply.continuation))
        context.set_trailing_metadata(tuple(metadata))
        return reply.to_bytes()

    async def Dispatch(self, request_bytes: bytes, context: grpc.aio.ServicerContext) -> bytes:
        """
        Handle a structured request naming its operation in the 'action' field.

        Args:
            request_bytes: JSON request envelope
            context: gRPC context

        Returns:
            Serialized reply
        """
        reply = await self.dispatcher.dispatch_bytes(request_bytes)
        return self._finish(reply, context)

    def action_handler(self, action: Action):
        """Build the handler for a per-operation sub-address."""
        async def handle(request_bytes: bytes, context: grpc.aio.ServicerContext) -> bytes:
            reply = await self.dispatcher.dispatch_bytes(request_bytes, action)
            return self._finish(reply, context)
        return handle

    async def SaveChunk(self, request_bytes: bytes, context: grpc.aio.ServicerContext) -> bytes:
        """
        Handle a binary saveChunk frame.

        Args:
            request_bytes: Length-prefixed header followed by chunk bytes
            context: gRPC context

        Returns:
            Serialized reply
        """
        reply = await self.dispatcher.save_chunk_frame(request_bytes)
        return self._finish(reply, context)

    async def Continue(self, request_bytes: bytes, context: grpc.aio.ServicerContext) -> bytes:
        """
        Handle the next round of a sequential chunk stream.

        Args:
            request_bytes: Continuation handle returned by the previous round
            context: gRPC context

        Returns:
            Chunk bytes, or a serialized error reply
        """
        reply = await self.dispatcher.continue_stream(request_bytes)
        return self._finish(reply, context)


def _unary(behavior) -> grpc.RpcMethodHandler:
    return grpc.unary_unary_rpc_method_handler(
        behavior,
        request_deserializer=lambda x: x,
        response_serializer=lambda x: x,
    )


def create_server(dispatcher: Dispatcher, address: str) -> aio.Server:
    """
    Create and configure gRPC server.

    Args:
        dispatcher: Dispatcher bound to the server context
        address: Bus address, used as the gRPC service name

    Returns:
        Configured gRPC server
    """
    server = aio.server()
    servicer = GridFSServicer(dispatcher)

    handlers = {
        DISPATCH_METHOD: _unary(servicer.Dispatch),
        SAVE_CHUNK_METHOD: _unary(servicer.SaveChunk),
        CONTINUE_METHOD: _unary(servicer.Continue),
    }
    for action in Action:
        handlers[action.value] = _unary(servicer.action_handler(action))

    server.add_generic_rpc_handlers((
        grpc.method_handlers_generic_handler(address, handlers),
    ))

    logger.info(f"Registered {len(handlers)} handlers under {address}")
    return server
