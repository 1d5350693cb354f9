from .streamer import ImageStream, ImageStreamer, image_request_headers

__all__ = ["ImageStream", "ImageStreamer", "image_request_headers"]
