"""Download call recordings from the telephony provider.

The recording url in the notification has no extension and CDN behaviour
differs between accounts, so a short ordered list of url/format candidates
is tried. Files are streamed to ``<dest>.part`` and renamed into place only
once the body is fully written.
"""
import glob
import os
from collections import namedtuple

import requests

from ..errors import AuthenticationError, DownloadError, DownloadExhausted

DownloadResult = namedtuple("DownloadResult", ["local_path", "bytes_written", "format"])
Candidate = namedtuple("Candidate", ["url", "dest_path", "format", "accept"])

USER_AGENT = "callpipe-worker"
CHUNK_SIZE = 64 * 1024
TMP_SUFFIX = ".part"
ACCEPT = {"mp3": "audio/mpeg", "wav": "audio/wav"}


def build_candidates(recording_url, dest_dir, recording_sid):
    base = recording_url.rstrip("/")
    mp3_path = os.path.join(dest_dir, f"{recording_sid}.mp3")
    wav_path = os.path.join(dest_dir, f"{recording_sid}.wav")
    return [
        Candidate(f"{base}.mp3", mp3_path, "mp3", ACCEPT["mp3"]),
        Candidate(f"{base}.wav", wav_path, "wav", ACCEPT["wav"]),
        # some accounts only serve media with an explicit download flag
        Candidate(f"{base}.mp3?Download=true", mp3_path, "mp3", ACCEPT["mp3"]),
        Candidate(f"{base}.wav?Download=true", wav_path, "wav", ACCEPT["wav"]),
        Candidate(f"{base}?Download=true", mp3_path, "mp3", ACCEPT["mp3"]),
    ]


def _remove_quietly(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class MediaFetcher:
    def __init__(self, recordings_dir, timeout=60, session=None, logger=None):
        self.recordings_dir = recordings_dir
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger

    def _log(self, level, msg, *args):
        if self.logger is not None:
            getattr(self.logger, level)(msg, *args)

    def clear_partials(self, account_sid, recording_sid):
        """Remove ``.part`` leftovers of an earlier interrupted download."""
        pattern = os.path.join(self.recordings_dir, account_sid, f"{glob.escape(recording_sid)}.*{TMP_SUFFIX}")
        removed = []
        for path in glob.glob(pattern):
            _remove_quietly(path)
            removed.append(path)
        if removed:
            self._log("info", "removed stale partial downloads: %s", removed)
        return removed

    def fetch_to_file(self, candidate, auth):
        headers = {"User-Agent": USER_AGENT, "Accept": candidate.accept}
        try:
            resp = self.session.get(candidate.url, headers=headers, auth=auth, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"request failed for {candidate.url}: {e}", url=candidate.url) from e

        with resp:
            if resp.status_code == 401:
                raise AuthenticationError(f"recording download unauthorized (401) for {candidate.url}")
            if resp.status_code < 200 or resp.status_code >= 300:
                body = ""
                try:
                    body = (resp.text or "")[:200]
                except (requests.RequestException, UnicodeDecodeError):
                    body = ""
                msg = f"recording download failed ({resp.status_code}) for {candidate.url}"
                if body:
                    msg += f": {body}"
                raise DownloadError(msg, status=resp.status_code, url=candidate.url)

            os.makedirs(os.path.dirname(candidate.dest_path), exist_ok=True)
            tmp_path = candidate.dest_path + TMP_SUFFIX
            written = 0
            try:
                with open(tmp_path, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
                os.replace(tmp_path, candidate.dest_path)
            except requests.RequestException as e:
                raise DownloadError(f"stream interrupted for {candidate.url}: {e}", url=candidate.url) from e
            except OSError as e:
                raise DownloadError(f"cannot write {candidate.dest_path}: {e}", url=candidate.url) from e
            finally:
                _remove_quietly(tmp_path)

        return written

    def download(self, recording_url, credentials, recording_sid):
        """Fetch the recording; ``credentials`` is ``(account_sid, auth_token)``.

        Returns a DownloadResult. Raises AuthenticationError on a 401 without
        trying further candidates, DownloadExhausted when nothing worked.
        """
        account_sid, auth_token = credentials
        dest_dir = os.path.join(self.recordings_dir, account_sid)
        self.clear_partials(account_sid, recording_sid)

        last_err = None
        for candidate in build_candidates(recording_url, dest_dir, recording_sid):
            try:
                written = self.fetch_to_file(candidate, auth=(account_sid, auth_token))
            except DownloadError as e:
                self._log("warning", "candidate %s failed: %s", candidate.url, e)
                last_err = e
                continue
            self._log("info", "downloaded %s -> %s (%s bytes)", candidate.url, candidate.dest_path, written)
            return DownloadResult(candidate.dest_path, written, candidate.format)

        raise DownloadExhausted(f"all media candidates failed for recording {recording_sid}", last_error=last_err)
