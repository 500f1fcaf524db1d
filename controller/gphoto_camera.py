import logging
import re
import subprocess
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from controller.camera_base import Camera, CameraError

logger = logging.getLogger(__name__)

_SAVED_FILE = re.compile(r"^Saving file as (.+)$", re.MULTILINE)
_JPEG_SUFFIXES = {".jpg", ".jpeg"}
_JPEG_MAGIC = b"\xff\xd8"


def _is_jpeg_file(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            return f.read(2) == _JPEG_MAGIC
    except OSError:
        return False


def _select_jpeg(paths: List[Path]) -> Optional[Path]:
    """Pick the JPEG among downloaded files (RAW+JPEG cameras download both)."""
    for path in paths:
        if path.suffix.lower() in _JPEG_SUFFIXES:
            return path
    for path in paths:
        if _is_jpeg_file(path):
            return path
    return None


class GPhotoCamera(Camera):
    def __init__(self, timeout: int = 10):
        self.timeout = timeout
        self._io_lock = threading.Lock()

    # ---------- Required interface ----------

    def health_check(self) -> bool:
        """
        Verify that the camera is connected and responsive.
        """
        try:
            subprocess.run(
                ["gphoto2", "--summary"],
                check=True,
                timeout=5,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            return True
        except Exception:
            return False

    def capture(self) -> bytes:
        with tempfile.TemporaryDirectory(prefix="capture_") as tmp:
            output_dir = Path(tmp)
            template = datetime.now().strftime("photo_%Y%m%d_%H%M%S_%%n.%%C")

            cmd = [
                "gphoto2",
                "--capture-image-and-download",
                "--force-overwrite",
                "--filename",
                str(output_dir / template),
            ]

            result = self._run(cmd, "Camera capture")

            output = result.stdout.decode(errors="ignore")
            downloaded = [Path(p.strip()) for p in _SAVED_FILE.findall(output)]
            if not downloaded:
                raise CameraError("Camera reported success but no files were downloaded")

            jpeg = _select_jpeg(downloaded)
            if jpeg is None:
                raise CameraError("No JPEG file was downloaded")
            if not jpeg.exists():
                raise CameraError("Camera reported success but the JPEG file was not created")

            logger.debug("Downloaded %s", jpeg.name)
            return jpeg.read_bytes()

    # ---------- Live view ----------

    def start_live_view(self) -> None:
        if not self.health_check():
            raise CameraError("Camera not detected")

    def stop_live_view(self) -> None:
        pass

    def get_live_view_frame(self) -> bytes:
        result = self._run(["gphoto2", "--capture-preview", "--stdout"], "Live view")
        if not result.stdout.startswith(_JPEG_MAGIC):
            raise CameraError("Live view returned no JPEG frame")
        return result.stdout

    def _run(self, cmd: List[str], what: str) -> subprocess.CompletedProcess:
        try:
            with self._io_lock:
                return subprocess.run(
                    cmd,
                    check=True,
                    timeout=self.timeout,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
        except subprocess.TimeoutExpired as e:
            raise CameraError(f"{what} timed out") from e
        except subprocess.CalledProcessError as e:
            raise CameraError(
                f"{what} failed: {e.stderr.decode(errors='ignore')}"
            ) from e
