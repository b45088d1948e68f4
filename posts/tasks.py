from celery import shared_task

from .drops import publish_due_drops as _publish_due_drops


@shared_task(name="posts.publish_due_drops")
def publish_due_drops():
    return _publish_due_drops()
