import asyncio
import signal

import pytest

from fakes import FakeAudioWebSocket, FakeProcess, fake_connect, wait_until
from fm_dx_console.audio import (
    AUDIO_CONNECT_OPTIONS,
    FALLBACK_REQUEST,
    FFPLAY_CMD,
    AudioStreamPlayer,
    is_unexpected_exit,
)


@pytest.mark.parametrize(
    "return_code, unexpected",
    [
        (None, False),
        (0, False),
        (-signal.SIGTERM.value, False),
        (1, True),
    ],
)
def test_is_unexpected_exit(return_code, unexpected):
    assert is_unexpected_exit(return_code) is unexpected


def test_stop_when_idle_is_harmless(events):
    player = AudioStreamPlayer("ws://example.com:8081/", events)
    player.stop()
    player.stop()
    assert not player.is_active
    assert events == []


def test_stream_pipes_audio_into_ffplay(events):
    calls = []
    spawned = []

    async def spawn(*cmd, **kwargs):
        spawned.append(cmd)
        return proc

    proc = FakeProcess()

    async def scenario():
        ws = FakeAudioWebSocket(chunks=[b"abc", "text is skipped", b"def"])
        player = AudioStreamPlayer(
            "ws://example.com:8081/", events, connect=fake_connect(ws, calls), spawn=spawn
        )
        player.play()
        assert player.is_active
        await wait_until(lambda: not player.is_active)
        return ws

    ws = asyncio.run(scenario())

    assert calls == [("ws://example.com:8081/", AUDIO_CONNECT_OPTIONS)]
    assert ws.sent == [FALLBACK_REQUEST]
    assert spawned == [tuple(FFPLAY_CMD)]
    assert proc.stdin.data == [b"abc", b"def"]
    assert proc.terminated
    assert proc.stdin.closed
    assert ws.closed
    assert events.of_type("error") == ["Audio WS Error: stream ended"]


def test_missing_ffplay_is_reported(events):
    async def spawn(*cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    async def scenario():
        ws = FakeAudioWebSocket()
        player = AudioStreamPlayer(
            "wss://example.com/stream/", events, connect=fake_connect(ws), spawn=spawn
        )
        player.play()
        await wait_until(lambda: not player.is_active)
        return ws

    ws = asyncio.run(scenario())
    assert events.of_type("error") == ["'ffplay' command not found. Playback disabled."]
    assert ws.closed


def test_play_twice_keeps_one_stream(events):
    connects = []

    async def connect(uri, **options):
        connects.append(uri)
        await asyncio.sleep(3600)

    async def scenario():
        player = AudioStreamPlayer("ws://example.com:8081/", events, connect=connect)
        player.play()
        player.play()
        await wait_until(lambda: connects)
        player.stop()
        await asyncio.sleep(0)
        return player

    player = asyncio.run(scenario())
    assert connects == ["ws://example.com:8081/"]
    assert not player.is_active


def test_quick_restart_keeps_new_ffplay_running(events):
    procs = []

    async def spawn(*cmd, **kwargs):
        procs.append(FakeProcess())
        return procs[-1]

    async def connect(uri, **options):
        return FakeAudioWebSocket(hold_open=True)

    async def scenario():
        player = AudioStreamPlayer("ws://example.com:8081/", events, connect=connect, spawn=spawn)
        player.play()
        await wait_until(lambda: len(procs) == 1)
        player.stop()
        player.play()
        await wait_until(lambda: len(procs) == 2)
        for _ in range(20):
            await asyncio.sleep(0)
        running = procs[1].returncode is None
        player.stop()
        await wait_until(lambda: procs[1].terminated)
        return running

    assert asyncio.run(scenario()) is True
    assert procs[0].terminated
    assert procs[1].terminated


def test_only_ffplay_errors_and_warnings_are_forwarded(events):
    proc = FakeProcess(stderr_lines=[
        b"Input #0, mp3, from 'fd:':\n",
        b"[mp3 @ 0x1] Header missing\n",
        b"[mp3float @ 0x2] error while decoding MPEG audio frame.\n",
        b"   Duration: N/A, bitrate: 128 kb/s\n",
        b"Warning: audio device busy\n",
        b"\n",
    ])
    player = AudioStreamPlayer("ws://example.com:8081/", events)

    asyncio.run(player._read_process_stderr(proc, "ffplay"))

    assert events.of_type("warning") == [
        "ffplay: [mp3float @ 0x2] error while decoding MPEG audio frame.",
        "ffplay: Warning: audio device busy",
    ]
