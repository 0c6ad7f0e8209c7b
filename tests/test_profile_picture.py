"""
Tests for avatar uploads sent as base64 data URLs.
"""

import base64
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image
from rest_framework import status

PICTURE_URL = '/api/profile/picture'


def image_data_url(fmt='PNG', mime='image/png', size=(8, 8)):
    buffer = BytesIO()
    Image.new('RGB', size, color=(200, 30, 30)).save(buffer, format=fmt)
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f'data:{mime};base64,{encoded}'


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path


@pytest.fixture
def student(make_user):
    return make_user(username='juan.dc')


@pytest.fixture
def logged_in_client(api_client, student):
    api_client.force_login(student)
    return api_client


@pytest.mark.django_db
class TestProfilePictureUpload:

    def test_upload_png(self, logged_in_client, student, media_root):
        response = logged_in_client.put(PICTURE_URL, {'imageBase64': image_data_url()}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['ok'] is True
        assert response.data['user']['imageUrl'].startswith('http://testserver/media/avatars/juan.dc/')

        student.refresh_from_db()
        assert student.avatar.name.startswith('avatars/juan.dc/avatar')
        assert (Path(media_root) / student.avatar.name).exists()

    @pytest.mark.parametrize('fmt, mime', [('JPEG', 'image/jpeg'), ('WEBP', 'image/webp')])
    def test_upload_other_formats(self, logged_in_client, media_root, fmt, mime):
        response = logged_in_client.put(
            PICTURE_URL, {'imageBase64': image_data_url(fmt, mime)}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK

    def test_profile_shows_new_picture(self, logged_in_client, media_root):
        logged_in_client.put(PICTURE_URL, {'imageBase64': image_data_url()}, format='json')

        response = logged_in_client.get('/api/profile')

        assert response.data['imageUrl'] is not None

    def test_replacing_picture_removes_old_file(self, logged_in_client, student, media_root):
        logged_in_client.put(PICTURE_URL, {'imageBase64': image_data_url()}, format='json')
        student.refresh_from_db()
        old_path = Path(media_root) / student.avatar.name

        logged_in_client.put(
            PICTURE_URL, {'imageBase64': image_data_url('JPEG', 'image/jpeg')}, format='json'
        )
        student.refresh_from_db()

        assert not old_path.exists()
        assert (Path(media_root) / student.avatar.name).exists()

    def test_unsupported_type_rejected(self, logged_in_client, media_root):
        response = logged_in_client.put(
            PICTURE_URL, {'imageBase64': image_data_url('GIF', 'image/gif')}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['field'] == 'imageBase64'
        assert response.data['error'] == 'Image must be a JPEG, PNG or WEBP data URL.'

    def test_plain_base64_without_data_url_rejected(self, logged_in_client, media_root):
        encoded = image_data_url().split(',', 1)[1]

        response = logged_in_client.put(PICTURE_URL, {'imageBase64': encoded}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_invalid_base64_rejected(self, logged_in_client, media_root):
        response = logged_in_client.put(
            PICTURE_URL, {'imageBase64': 'data:image/png;base64,@@@not-base64@@@'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'Image data is not valid base64.'

    def test_non_image_bytes_rejected(self, logged_in_client, media_root):
        encoded = base64.b64encode(b'definitely not an image').decode('ascii')

        response = logged_in_client.put(
            PICTURE_URL, {'imageBase64': f'data:image/png;base64,{encoded}'}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'File is not a valid image.'

    def test_oversized_image_rejected(self, logged_in_client, media_root, settings):
        settings.CLASSCART_AVATAR_MAX_BYTES = 16

        response = logged_in_client.put(
            PICTURE_URL, {'imageBase64': image_data_url(size=(64, 64))}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'cannot exceed' in response.data['error']

    def test_missing_image_rejected(self, logged_in_client, media_root):
        response = logged_in_client.put(PICTURE_URL, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['field'] == 'imageBase64'

    def test_requires_session(self, api_client, media_root):
        response = api_client.put(PICTURE_URL, {'imageBase64': image_data_url()}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['kind'] == 'Unauthenticated'
