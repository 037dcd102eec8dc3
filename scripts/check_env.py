#!/usr/bin/env python3
import os, sys, shutil, traceback

def ok(msg): print("[OK] " + msg)
def warn(msg): print("[WARN] " + msg)
def fail(msg): print("[FAIL] " + msg); sys.exit(1)

# 1) OpenCV
try:
    import cv2  # noqa
    ok(f"OpenCV {cv2.__version__} import is available")
except Exception:
    traceback.print_exc()
    fail("OpenCV not available. Install via: pip install opencv-python")

# 2) ffmpeg / ffprobe (fallback decoder backend)
for tool in ("ffmpeg", "ffprobe"):
    if shutil.which(tool):
        ok(f"{tool} found in PATH")
    else:
        warn(f"{tool} not found in PATH; only the OpenCV backend will be available")

# 3) Report directory
report_dir = os.environ.get("TIMESTRIP_REPORT_DIR")
if report_dir:
    os.makedirs(report_dir, exist_ok=True)
    ok(f"Report directory ensured at {report_dir}")

print("\nEnvironment check passed ✅")
