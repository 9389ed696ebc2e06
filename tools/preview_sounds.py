import sys
import time

import pyaudio

from alarms.sounds import SoundCatalog
from audio_io import load_wav, scale_volume
from config import load_config


def main():
    config = load_config()
    catalog = SoundCatalog(config.sounds_dir, config.custom_sounds_path)
    wanted = sys.argv[1:]
    rate = config.output_target_rate

    pa = pyaudio.PyAudio()
    stream = pa.open(
        format=pyaudio.paInt16,
        channels=1,
        rate=rate,
        output=True,
        output_device_index=config.output_device_index,
    )
    for asset in catalog.all_sounds():
        if wanted and asset.id not in wanted:
            continue
        asset = catalog.resolve(asset.id)
        print(f"Playing {asset.id} ({asset.name})...")
        stream.write(scale_volume(load_wav(asset.path, rate), 0.6))
        time.sleep(0.3)
    stream.stop_stream()
    stream.close()
    pa.terminate()


if __name__ == "__main__":
    main()
