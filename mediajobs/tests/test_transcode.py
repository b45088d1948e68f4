from unittest.mock import patch

from botocore.exceptions import ClientError
from django.test import SimpleTestCase, override_settings

from mediajobs import s3
from mediajobs.exceptions import MediaRejected
from mediajobs.models import MediaJob
from mediajobs.transcode import FfmpegProcessor, MediaProbe, duration_limit, output_key_for, thumbnail_key_for


class OutputKeyTests(SimpleTestCase):

    def test_video(self):
        self.assertEqual(output_key_for("raw/7/clip.mov", "video"), "video/7/clip.mp4")

    def test_thumbnail_sits_next_to_the_output(self):
        self.assertEqual(thumbnail_key_for("video/7/clip.mp4"), "video/7/clip_thumb.jpg")

    def test_audio_prefix_is_not_doubled(self):
        self.assertEqual(output_key_for("raw/audio/7/song.wav", "audio"), "audio/7/song.m4a")

    def test_duration_limit_per_tier(self):
        self.assertEqual(duration_limit("free", "video"), 60)
        self.assertEqual(duration_limit("pro", "audio"), 1800)
        self.assertEqual(duration_limit("unknown", "video"), 60)


@patch("mediajobs.transcode.subprocess.run")
@patch("mediajobs.transcode.s3")
class FfmpegProcessorTests(SimpleTestCase):

    def setUp(self):
        self.job = MediaJob(
            user_tier="free",
            media_kind="video",
            raw_file_url="http://cdn.test/media-local/raw/7/clip.mov",
        )
        self.reports = []

    def configure(self, mock_s3):
        mock_s3.key_from_url.return_value = "raw/7/clip.mov"
        mock_s3.public_url.side_effect = lambda key: f"http://cdn.test/media-local/{key}"

    def test_transcodes_and_reports_output(self, mock_s3, mock_run):
        self.configure(mock_s3)
        probes = [MediaProbe(duration=30.0, width=3840, height=2160), MediaProbe(duration=30.0, width=1920, height=1080)]

        with patch("mediajobs.transcode.probe", side_effect=probes):
            output = FfmpegProcessor()(self.job, self.reports.append)

        self.assertEqual(output.output_url, "http://cdn.test/media-local/video/7/clip.mp4")
        self.assertEqual((output.duration_seconds, output.width, output.height), (30.0, 1920, 1080))
        self.assertEqual(output.thumbnail_url, "http://cdn.test/media-local/video/7/clip_thumb.jpg")
        self.assertEqual(self.reports, [20, 30, 70, 80, 90])
        self.assertEqual(mock_run.call_count, 2)
        thumb_cmd = mock_run.call_args_list[1].args[0]
        self.assertEqual(thumb_cmd[thumb_cmd.index("-ss") + 1], "1")
        self.assertEqual(thumb_cmd[thumb_cmd.index("-vframes") + 1], "1")
        self.assertEqual(thumb_cmd[thumb_cmd.index("-vf") + 1], "scale=640:-2")
        self.assertTrue(thumb_cmd[-1].endswith(".jpg"))
        uploads = [(c.args[1], c.kwargs["content_type"]) for c in mock_s3.upload_file.call_args_list]
        self.assertEqual(uploads, [("video/7/clip.mp4", "video/mp4"), ("video/7/clip_thumb.jpg", "image/jpeg")])

    def test_audio_has_no_frame_size(self, mock_s3, mock_run):
        self.configure(mock_s3)
        mock_s3.key_from_url.return_value = "raw/audio/7/song.wav"
        self.job.media_kind = "audio"

        with patch("mediajobs.transcode.probe", return_value=MediaProbe(duration=42.0)):
            output = FfmpegProcessor()(self.job, self.reports.append)

        self.assertEqual(output.output_url, "http://cdn.test/media-local/audio/7/song.m4a")
        self.assertIsNone(output.width)
        self.assertIsNone(output.thumbnail_url)
        self.assertEqual(self.reports, [20, 30, 70, 90])
        mock_run.assert_called_once()
        mock_s3.upload_file.assert_called_once()

    def test_too_long_for_tier(self, mock_s3, mock_run):
        self.configure(mock_s3)

        with patch("mediajobs.transcode.probe", return_value=MediaProbe(duration=120.0, width=1280, height=720)):
            with self.assertRaises(MediaRejected):
                FfmpegProcessor()(self.job, self.reports.append)

        mock_run.assert_not_called()
        mock_s3.upload_file.assert_not_called()
        self.assertEqual(self.reports, [20])


class S3HelperTests(SimpleTestCase):

    def client_error(self, code, status=None):
        response = {"Error": {"Code": code, "Message": code}}
        if status:
            response["ResponseMetadata"] = {"HTTPStatusCode": status}
        return ClientError(response, "DeleteObject")

    def test_not_found_errors(self):
        self.assertTrue(s3.is_not_found(self.client_error("NoSuchKey")))
        self.assertTrue(s3.is_not_found(self.client_error("Whatever", status=404)))
        self.assertTrue(s3.is_not_found(RuntimeError("Object not found")))
        self.assertFalse(s3.is_not_found(self.client_error("AccessDenied", status=403)))
        self.assertFalse(s3.is_not_found(RuntimeError("connection reset")))

    @override_settings(S3_PUBLIC_ENDPOINT="https://media.example.com/", S3_BUCKET="uploads")
    def test_public_url_and_back(self):
        url = s3.public_url("video/7/clip.mp4")
        self.assertEqual(url, "https://media.example.com/uploads/video/7/clip.mp4")
        self.assertEqual(s3.key_from_url(url), "video/7/clip.mp4")
        self.assertEqual(s3.key_from_url("raw/7/clip.mov"), "raw/7/clip.mov")
