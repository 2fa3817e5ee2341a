#!/usr/bin/env python3
from collections import namedtuple
import logging
import requests
import spotipy
from requests.adapters import HTTPAdapter
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

SCOPE = "user-read-currently-playing user-read-recently-played"
DEFAULT_TIMEOUT = 10
DEFAULT_COVER_MIME = "image/jpeg"

Credentials = namedtuple('Credentials', ['client_id', 'client_secret', 'refresh_token', 'redirect_uri'])

# shared connection pool, no retries: every failure goes straight to the caller
session = requests.Session()
adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
session.mount('http://', adapter)
session.mount('https://', adapter)


class AuthError(Exception):
    pass


class UpstreamFetchError(Exception):
    pass


def get_access_token(credentials, timeout=DEFAULT_TIMEOUT):
    """Exchange the stored refresh token for a fresh access token.

    Nothing is cached: a new token is requested on every call.
    """
    if not credentials or not all([credentials.client_id, credentials.client_secret, credentials.refresh_token]):
        raise AuthError("Missing Spotify credentials: SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET / SPOTIFY_REFRESH_TOKEN")
    sp_oauth = SpotifyOAuth(
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
        redirect_uri=credentials.redirect_uri,
        scope=SCOPE,
        cache_handler=MemoryCacheHandler(),
        requests_session=session,
        requests_timeout=timeout,
        open_browser=False
    )
    try:
        token_info = sp_oauth.refresh_access_token(credentials.refresh_token)
    except SpotifyOauthError as e:
        raise AuthError(f"Token refresh rejected: {e}") from e
    except requests.RequestException as e:
        raise AuthError(f"Token endpoint unreachable: {e}") from e
    except (ValueError, KeyError, TypeError) as e:
        raise AuthError(f"Malformed token response: {e}") from e
    token = token_info.get('access_token') if isinstance(token_info, dict) else None
    if not token:
        raise AuthError("No access_token in token response")
    return token


def _spotify_client(access_token, timeout=DEFAULT_TIMEOUT):
    return spotipy.Spotify(auth=access_token, requests_session=session, requests_timeout=timeout, retries=0, status_retries=0)


def fetch_cover_image(url, timeout=DEFAULT_TIMEOUT):
    if not url:
        raise UpstreamFetchError("Track has no album art")
    try:
        resp = session.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise UpstreamFetchError(f"Album art download failed: {e}") from e
    if not resp.content:
        raise UpstreamFetchError(f"Album art at {url} is empty")
    mime = (resp.headers.get('Content-Type') or '').split(';')[0].strip().lower()
    if not mime.startswith('image/'):
        mime = DEFAULT_COVER_MIME
    return resp.content, mime


def track_info_from_item(item, timeout=DEFAULT_TIMEOUT):
    artists_list = [a['name'] for a in item.get('artists', []) if a.get('name')]
    images = (item.get('album') or {}).get('images') or []
    art_url = images[0].get('url') if images else None
    cover_image, cover_mime = fetch_cover_image(art_url, timeout=timeout)
    return {
        'song_name': item['name'],
        'artist_name': ", ".join(artists_list),
        'cover_image': cover_image,
        'cover_mime': cover_mime
    }


def get_currently_playing(access_token, timeout=DEFAULT_TIMEOUT):
    logger = logging.getLogger('SpotifyCard')
    try:
        sp = _spotify_client(access_token, timeout=timeout)
        track = sp.current_user_playing_track()
        if not track or not track.get('item'):
            return None
        return track_info_from_item(track['item'], timeout=timeout)
    except Exception as e:
        logger.error(f"Error retrieving currently playing song: {e}")
        return None


def get_recently_played(access_token, timeout=DEFAULT_TIMEOUT):
    logger = logging.getLogger('SpotifyCard')
    try:
        sp = _spotify_client(access_token, timeout=timeout)
        recent = sp.current_user_recently_played(limit=1)
        items = (recent or {}).get('items') or []
        if not items:
            return None
        return track_info_from_item(items[0]['track'], timeout=timeout)
    except Exception as e:
        logger.error(f"Error retrieving recently played songs: {e}")
        return None
