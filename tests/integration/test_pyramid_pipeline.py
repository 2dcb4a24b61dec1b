"""
End-to-end: feed snapshot -> collector -> raw tiles -> 8-level pyramid
"""

import os
import sys
from unittest.mock import patch

import cv2
import numpy as np

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from collector import service
from collector.collector import Collector
from common.config import load_config
from common.types import Observation, TileCoord
from density.image import Image


class TestPyramidPipeline:
    """Collector-level scenarios against a temporary storage root"""

    def test_two_tiles_end_to_end(self, tmp_path):
        """Four points under key 5 give tiles (0,0) and (1,0) and a full pyramid"""
        c = Collector(tmp_path)
        c.register_map("M", [5])
        for x, y in [(0, 0), (1, 1), (1023, 1023), (1024, 0)]:
            assert c.ingest(5, x, y)

        m = c.get_map("M")
        assert m.tile_coords() == [TileCoord(0, 0), TileCoord(1, 0)]

        reports = c.save_all()
        assert reports["M"].ok
        root = tmp_path / "M"
        assert (root / "raw" / "0" / "0.dat").stat().st_size == 131072
        assert (root / "raw" / "1" / "0.dat").stat().st_size == 131072
        assert (root / "0" / "0" / "0.png").exists()
        assert (root / "0" / "1" / "0.png").exists()
        for level in range(1, 8):
            assert (root / str(level) / "0" / "0.png").exists()
            assert not (root / str(level) / "1").exists()

        base = Image.load(root / "0" / "0" / "0.png")
        assert base.data[0, 0] == 1.0 and base.data[1, 1] == 1.0 and base.data[1023, 1023] == 1.0
        assert base.data.sum() == 3.0
        c.close()

    def test_reload_then_save_keeps_old_tiles(self, tmp_path):
        """A second session that loads first still renders the first session's tiles"""
        first = Collector(tmp_path)
        first.register_map("M", [5])
        first.ingest(5, 10, 10)
        first.save_all()
        first.close()

        second = Collector(tmp_path)
        second.register_map("M", [5])
        assert second.load_all() == 1
        second.ingest(5, 5000, 5000)
        second.save_all()
        second.close()

        l3 = cv2.imread(str(tmp_path / "M" / "3" / "0" / "0.png"), cv2.IMREAD_GRAYSCALE)
        # (10,10) at level 3 lands in pixel (1,1); (5000,5000) in (625,625)
        assert l3[1, 1] > 0
        assert l3[625, 625] > 0

    def test_pyramid_is_regenerable(self, tmp_path):
        """Deleting rendered levels and saving again reproduces identical rasters"""
        c = Collector(tmp_path)
        c.register_map("M", [5])
        rng = np.random.default_rng(7)
        for x, y in rng.integers(-3000, 3000, size=(200, 2)):
            c.ingest(5, int(x), int(y))
        c.save_all()
        target = tmp_path / "M" / "4" / "-1" / "-1.png"
        first = cv2.imread(str(target), cv2.IMREAD_GRAYSCALE)
        for level in range(8):
            for p in (tmp_path / "M" / str(level)).rglob("*.png"):
                p.unlink()
        c.save_all()
        second = cv2.imread(str(target), cv2.IMREAD_GRAYSCALE)
        assert np.array_equal(first, second)
        c.close()


class TestService:
    """collector.service with the network stubbed out"""

    def test_run_once(self, tmp_path):
        """--once polls, ingests, and renders the pyramid"""
        P = load_config(None)
        P["storage"]["root"] = str(tmp_path)
        P["maps"] = [{"name": "M", "routing_keys": [5]}]
        obs = [Observation(5, 0, 0), Observation(6, 0, 0)]
        with patch("collector.service.FeedClient.fetch", return_value=obs):
            assert service.run(P, once=True) == 0
        assert (tmp_path / "M" / "raw" / "0" / "0.dat").exists()
        assert (tmp_path / "M" / "7" / "0" / "0.png").exists()

    def test_run_fails_fatally_on_load_error(self, tmp_path):
        """An unreadable raw/ tree stops the service before any save"""
        (tmp_path / "M").mkdir()
        (tmp_path / "M" / "raw").write_text("broken")
        P = load_config(None)
        P["storage"]["root"] = str(tmp_path)
        P["maps"] = [{"name": "M", "routing_keys": [5]}]
        with patch("collector.service.FeedClient.fetch") as fetch:
            assert service.run(P, once=True) == 1
            fetch.assert_not_called()
        assert not (tmp_path / "M" / "0").exists()
