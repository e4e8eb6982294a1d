"""Adapters for the external systems wabridge talks to."""

from wabridge.adapters.base import BaseMessagingAdapter
from wabridge.adapters.object_storage import S3MediaStorage
from wabridge.adapters.whatsapp import WhatsAppCloudAdapter

__all__ = ["BaseMessagingAdapter", "S3MediaStorage", "WhatsAppCloudAdapter"]
