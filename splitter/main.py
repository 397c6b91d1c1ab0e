import asyncio
import json
import logging
import os
from pathlib import Path

from fastapi import FastAPI, UploadFile, File, Form, Query, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import ValidationError

from . import config
from .analyzer import analyze_signal, phase_warning
from .errors import DecodeError, SessionNotFoundError
from .export import export_tracks, track_name, download_filename
from .models import AnalysisResponse, TrackInfo, WaveformRequest, WaveformResponse
from .sessions import Session, SessionStore
from .throttle import RateLimitedTrigger
from .utils import (
    get_session_dir, new_session_id, validate_session_id, decode_audio,
    SUPPORTED_EXTENSIONS, check_dependencies,
)
from .waveform import bucket_count_for_width, layout_bars, waveform_peaks

logger = logging.getLogger("splitter")
logger.setLevel(config.LOG_LEVEL)
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(_handler)

app = FastAPI(title="Audio Splitter", version="1.0.0")

store = SessionStore()

MAX_WIDTH = 20000


@app.on_event("startup")
async def startup_event():
    check_dependencies()


@app.on_event("shutdown")
async def shutdown_event():
    store.release_all()


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/analyze")
async def analyze(
    file: UploadFile = File(...),
    client_id: str | None = Form(default=None),
    width: int = Form(default=config.DEFAULT_WAVEFORM_WIDTH, ge=1, le=MAX_WIDTH),
):
    """
    Upload a multi-channel recording and analyse it.

    Decodes the file, builds the mono downmix, measures every channel and
    exports one WAV per track. Returns Server-Sent Events: `progress`
    events, then either one `result` event (AnalysisResponse) or one
    `error` event. A newer upload with the same client_id supersedes this
    one.
    """
    filename = file.filename or "audio"
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported format. Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}")

    # Read file contents before entering the generator
    data = await file.read()
    ticket = store.begin(client_id)

    async def event_stream():
        def sse(event_type: str, payload: dict) -> str:
            return f"event: {event_type}\ndata: {json.dumps(payload)}\n\n"

        def superseded() -> str:
            return sse("error", {"message": "Superseded by a newer upload", "superseded": True})

        yield sse("progress", {"step": "Saving file...", "percent": 5})
        session_id = new_session_id()
        session_dir = get_session_dir(session_id)
        committed = False
        try:
            source_path = os.path.join(session_dir, f"source{ext}")
            with open(source_path, "wb") as f:
                f.write(data)
            await asyncio.sleep(0)

            yield sse("progress", {"step": "Decoding audio...", "percent": 15})
            try:
                signal = await asyncio.to_thread(decode_audio, source_path)
            except DecodeError as exc:
                logger.info("[ANALYZE] %s: %s", filename, exc)
                yield sse("error", {"message": "Unable to read data from file."})
                return
            if not store.is_current(ticket, client_id):
                yield superseded()
                return

            yield sse("progress", {"step": "Analysing channels...", "percent": 40})
            result = await asyncio.to_thread(analyze_signal, signal)

            yield sse("progress", {"step": "Exporting tracks...", "percent": 70})
            files = await asyncio.to_thread(export_tracks, result, session_dir)

            session = Session(
                session_id=session_id,
                filename=filename,
                directory=session_dir,
                result=result,
                files=files,
                client_id=client_id,
            )
            committed = store.commit(session, ticket)
            if not committed:
                yield superseded()
                return

            yield sse("progress", {"step": "Computing waveforms...", "percent": 90})
            response = await asyncio.to_thread(_build_response, session, width)
            yield sse("progress", {"step": "Done", "percent": 100})
            yield sse("result", response.model_dump())
        except Exception:
            logger.exception("[ANALYZE] analysis failed for %s", filename)
            yield sse("error", {"message": "Analysis failed."})
        finally:
            if not committed:
                store.abandon(ticket, client_id)
                store.discard(session_id)

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@app.get("/api/session/{session_id}", response_model=AnalysisResponse)
async def get_session(
    session_id: str,
    width: int = Query(default=config.DEFAULT_WAVEFORM_WIDTH, ge=1, le=MAX_WIDTH),
):
    """Return the stored analysis without re-uploading."""
    session = _get_session(session_id)
    return await asyncio.to_thread(_build_response, session, width)


@app.delete("/api/session/{session_id}")
async def delete_session(session_id: str):
    """Release a session and delete its exported tracks."""
    _get_session(session_id)
    store.release(session_id)
    return {"session_id": session_id, "released": True}


@app.get("/api/waveform/{session_id}/{track}", response_model=WaveformResponse)
async def waveform(
    session_id: str,
    track: int,
    width: int = Query(default=config.DEFAULT_WAVEFORM_WIDTH, ge=1, le=MAX_WIDTH),
    height: int | None = Query(default=None, ge=1),
    pixel_ratio: float = Query(default=1.0, gt=0, le=8),
):
    """Peaks for one track at a display width, with bar geometry if height is given."""
    session = _get_session(session_id)
    _check_track(session, track)
    peaks = await asyncio.to_thread(waveform_peaks, session.track(track), width)
    bars = layout_bars(peaks, width, height, pixel_ratio) if height else None
    return WaveformResponse(
        session_id=session_id,
        track=track,
        width=width,
        bucket_count=bucket_count_for_width(width),
        peaks=peaks,
        bars=bars,
    )


@app.get("/api/audio/{session_id}/{track}")
async def serve_audio(session_id: str, track: int):
    """Serve an exported track for browser playback."""
    session = _get_session(session_id)
    _check_track(session, track)
    return FileResponse(session.files[track], media_type="audio/wav")


@app.get("/api/download/{session_id}/{track}")
async def download(session_id: str, track: int):
    """Download an exported track as '<upload name> - <track name>.wav'."""
    session = _get_session(session_id)
    _check_track(session, track)
    return FileResponse(
        session.files[track],
        media_type="audio/wav",
        filename=download_filename(session.filename, track),
    )


@app.websocket("/ws/waveform/{session_id}")
async def ws_waveform(websocket: WebSocket, session_id: str):
    """
    Waveform updates driven by client resizes.

    The client sends {"track": i, "width": px} whenever a track's display
    width changes; bursts are debounced per track and answered with one
    {"type": "waveform", ...} message.
    """
    await websocket.accept()
    if session_id not in store:
        await websocket.close(code=1008)
        return

    async def send_peaks(track: int, width: int):
        try:
            session = store.get(session_id)
        except SessionNotFoundError:
            await websocket.send_json({"type": "error", "message": "Session not found"})
            return
        if track >= session.track_count:
            await websocket.send_json({"type": "error", "message": f"No track {track}"})
            return
        peaks = await asyncio.to_thread(waveform_peaks, session.track(track), width)
        await websocket.send_json({
            "type": "waveform",
            "track": track,
            "width": width,
            "bucket_count": bucket_count_for_width(width),
            "peaks": peaks,
        })

    triggers: dict[int, RateLimitedTrigger] = {}
    try:
        while True:
            message = await websocket.receive_text()
            try:
                req = WaveformRequest.model_validate_json(message)
            except ValidationError:
                await websocket.send_json({"type": "error", "message": "Invalid waveform request"})
                continue
            if req.track not in triggers:
                triggers[req.track] = RateLimitedTrigger(send_peaks, config.RESIZE_DEBOUNCE_MS / 1000)
            triggers[req.track].trigger(req.track, req.width)
    except WebSocketDisconnect:
        pass
    finally:
        for trigger in triggers.values():
            trigger.cancel()


def _get_session(session_id: str) -> Session:
    try:
        validate_session_id(session_id)
    except ValueError:
        raise HTTPException(400, "Invalid session id")
    try:
        return store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")


def _check_track(session: Session, track: int) -> None:
    if not 0 <= track < session.track_count:
        raise HTTPException(404, f"No track {track} in session")


def _build_response(session: Session, width: int) -> AnalysisResponse:
    result = session.result
    tracks = [
        TrackInfo(
            index=i,
            name=track_name(i),
            volume=volume,
            peaks=waveform_peaks(track, width),
        )
        for i, (track, volume) in enumerate(zip(result.tracks, result.channel_volumes))
    ]
    return AnalysisResponse(
        session_id=session.session_id,
        filename=session.filename,
        duration=session.signal.duration,
        sample_rate=session.signal.sample_rate,
        channel_count=session.signal.channel_count,
        chunk_count=result.chunk_count,
        mono_ratio=result.mono_ratio,
        mono_ratio_percent=result.mono_ratio_percent,
        phase_warning=phase_warning(result),
        peak_mode=config.PEAK_MODE,
        tracks=tracks,
    )
