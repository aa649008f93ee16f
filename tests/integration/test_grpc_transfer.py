"""Integration tests: file server and file client over a real in-process gRPC channel."""

import asyncio
import logging
from contextlib import asynccontextmanager

import pytest

from common.config import TransferConfig
from common.exceptions import InvalidResumePoint, SourceUnavailable
from fileclient.grpc_client import FileServiceClient
from fileclient.main import run_transfer
from fileserver.grpc_server import create_server, bind_port


CHUNK = 4096


@asynccontextmanager
async def running_server(source_path, chunk_size=CHUNK):
    """Start a FileService on an ephemeral localhost port; yield the port."""
    config = TransferConfig(source_path=str(source_path), chunk_size=chunk_size, server_port=0)
    server = create_server(config)
    port = bind_port(server, config, host='127.0.0.1')
    await server.start()
    try:
        yield port
    finally:
        await server.stop(None)


def client_config(port, destination, **overrides):
    values = {
        'chunk_size': CHUNK,
        'server_host': '127.0.0.1',
        'server_port': port,
        'destination_path': str(destination),
        'retry_delay': 0,
    }
    values.update(overrides)
    return TransferConfig(**values)


@pytest.mark.asyncio
async def test_metadata_over_grpc(make_source, destination):
    source = make_source(10 * CHUNK + 1)

    async with running_server(source) as port:
        client = FileServiceClient(client_config(port, destination))
        try:
            metadata = await client.get_file_metadata()
        finally:
            await client.close()

    assert metadata.total_size == 10 * CHUNK + 1
    assert metadata.total_chunk_count == 11
    assert metadata.chunk_size == CHUNK


@pytest.mark.asyncio
async def test_stream_from_resume_point_over_grpc(make_source, destination):
    source = make_source(6 * CHUNK)
    content = source.read_bytes()

    async with running_server(source) as port:
        client = FileServiceClient(client_config(port, destination))
        try:
            chunks = [chunk async for chunk in client.get_file_stream(4)]
        finally:
            await client.close()

    assert [c.sequence_number for c in chunks] == [4, 5]
    assert b''.join(c.chunk_data for c in chunks) == content[4 * CHUNK:]


@pytest.mark.asyncio
async def test_full_transfer_over_grpc(make_source, destination):
    source = make_source(25 * CHUNK + 123)

    async with running_server(source) as port:
        state = await run_transfer(client_config(port, destination, shard_count=4))

    assert state.confirmed_chunk_count == 26
    assert state.attempts == 1
    assert destination.read_bytes() == source.read_bytes()


@pytest.mark.asyncio
async def test_missing_source_maps_to_source_unavailable(tmp_path, destination):
    async with running_server(tmp_path / 'missing.bin') as port:
        client = FileServiceClient(client_config(port, destination))
        try:
            with pytest.raises(SourceUnavailable):
                await client.get_file_metadata()
        finally:
            await client.close()


@pytest.mark.asyncio
async def test_start_past_end_maps_to_invalid_resume_point(make_source, destination):
    source = make_source(2 * CHUNK)

    async with running_server(source) as port:
        client = FileServiceClient(client_config(port, destination))
        try:
            with pytest.raises(InvalidResumePoint):
                async for _ in client.get_file_stream(5):
                    pass
        finally:
            await client.close()


@pytest.mark.asyncio
async def test_chunk_size_disagreement_is_detected(make_source, destination):
    source = make_source(8 * CHUNK)

    async with running_server(source) as port:
        client = FileServiceClient(client_config(port, destination, chunk_size=CHUNK * 2))
        try:
            with pytest.raises(SourceUnavailable):
                await client.get_file_metadata()
        finally:
            await client.close()


@pytest.mark.asyncio
async def test_server_logs_consumer_going_away(make_source, destination, caplog):
    source = make_source(2000 * CHUNK)

    with caplog.at_level(logging.WARNING, logger='fileserver.grpc_server'):
        async with running_server(source) as port:
            client = FileServiceClient(client_config(port, destination))
            try:
                stream = client.get_file_stream(0)
                first = await stream.__anext__()
                await stream.aclose()

                for _ in range(50):
                    if any('Consumer went away' in r.getMessage() for r in caplog.records):
                        break
                    await asyncio.sleep(0.05)
            finally:
                await client.close()

    assert first.sequence_number == 0
    assert any('Consumer went away' in r.getMessage() for r in caplog.records)
