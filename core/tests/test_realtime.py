import json

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from clinic.asgi import application
from core.services import events

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture(autouse=True)
def _fresh_layer():
    yield
    async_to_sync(get_channel_layer().flush)()


async def _connect(query=''):
    communicator = WebsocketCommunicator(application, f'/ws/clinic/{query}')
    connected, code = await communicator.connect()
    return communicator, connected, code


def test_anonymous_socket_is_closed():
    async def run():
        communicator, connected, code = await _connect()
        await communicator.disconnect()
        return connected, code

    connected, code = async_to_sync(run)()
    assert connected is False
    assert code == 4001


def test_admin_without_clinic_is_closed(platform_admin):
    token = str(AccessToken.for_user(platform_admin))

    async def run():
        communicator, connected, code = await _connect(f'?token={token}')
        await communicator.disconnect()
        return connected, code

    assert async_to_sync(run)() == (False, 4003)


def test_staff_receives_owner_clinic_events(staff, doctor):
    token = str(AccessToken.for_user(staff))

    async def run():
        communicator, connected, _ = await _connect(f'?token={token}')
        assert connected
        welcome = json.loads(await communicator.receive_from())
        await communicator.send_to(text_data='ping')
        pong = json.loads(await communicator.receive_from())
        await get_channel_layer().group_send(events.clinic_group(doctor.pk), {
            'type': 'clinic.event', 'event': events.BILL_UPDATED, 'bill_id': 7, 'status': 'paid',
        })
        pushed = json.loads(await communicator.receive_from())
        await communicator.disconnect()
        return welcome, pong, pushed

    welcome, pong, pushed = async_to_sync(run)()
    assert welcome == {'type': 'welcome', 'clinic_id': doctor.pk}
    assert pong == {'type': 'pong'}
    assert pushed['event'] == 'bill.updated'
    assert pushed['bill_id'] == 7


def test_publish_reaches_clinic_group(doctor):
    layer = get_channel_layer()
    async_to_sync(layer.group_add)(events.clinic_group(doctor.pk), 'test-listener')
    # outside an atomic block on_commit callbacks run straight away
    events.publish(doctor.pk, events.APPOINTMENT_CREATED, appointment_id=3)
    message = async_to_sync(layer.receive)('test-listener')
    assert message['type'] == 'clinic.event'
    assert message['event'] == 'appointment.created'
    assert message['appointment_id'] == 3
