import os

import pyaudio

configured = os.getenv("OUTPUT_DEVICE_INDEX")

pa = pyaudio.PyAudio()
default_index = int(pa.get_default_output_device_info()["index"])

print("\n=== OUTPUT DEVICES (alarm speakers) ===\n")
for i in range(pa.get_device_count()):
    info = pa.get_device_info_by_index(i)
    if info.get("maxOutputChannels", 0) <= 0:
        continue
    marks = []
    if i == default_index:
        marks.append("default")
    if configured and i == int(configured):
        marks.append("OUTPUT_DEVICE_INDEX")
    print(
        f"[OUT] Index {i}: {info['name']} | "
        f"rate={int(info['defaultSampleRate'])}"
        f"{' | ' + ', '.join(marks) if marks else ''}"
    )

pa.terminate()
