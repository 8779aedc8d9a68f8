"""Reassembly of streamed backend turns."""

from lmconductor.streaming.assembler import AssemblerState, PendingToolCall, StreamAssembler

__all__ = ["AssemblerState", "PendingToolCall", "StreamAssembler"]
