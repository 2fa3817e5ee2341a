from flask import Flask, render_template, Response, jsonify
from logging.handlers import RotatingFileHandler
from base64 import b64encode
import os, re, toml, time, copy, logging
import spotify_api
import palette
from spotify_api import AuthError, Credentials
from palette import PaletteError

app = Flask(__name__)
# song and artist names come from external metadata and must never reach the svg unescaped
app.jinja_env.autoescape = True
START_TIME = time.time()
CARD_TEMPLATE = "spotifycard.svg"
NOW_PLAYING = "Now playing"
RECENTLY_PLAYED = "Recently played"
# characters XML 1.0 cannot carry even when escaped
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

@app.after_request
def add_header(response):
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response

CONFIG_PATH = os.environ.get("SPOTIFYCARD_CONFIG", "config.toml")
DEFAULT_CONFIG = {
    "spotify": {
        "client_id": "",
        "client_secret": "",
        "refresh_token": "",
        "redirect_uri": "http://127.0.0.1:8000/callback"
    },
    "server": {
        "host": "0.0.0.0",
        "port": 8000
    },
    "card": {
        "height": 450,
        "scroll_threshold": 24,
        "palette_size": 5,
        "palette_quality": 10
    },
    "network": {
        "timeout": 10
    },
    "logging": {
        "level": "INFO",
        "log_file": "spotifycard.log",
        "max_log_lines": 10000,
        "max_backup_files": 5
    }
}
ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REFRESH_TOKEN": ("spotify", "refresh_token"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
}


class NoSongDataError(Exception):
    pass


def load_config(path=None):
    path = path or CONFIG_PATH
    config = copy.deepcopy(DEFAULT_CONFIG)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                user_config = toml.load(f)
            for section, values in user_config.items():
                if isinstance(values, dict) and isinstance(config.get(section), dict):
                    config[section].update(values)
                else:
                    config[section] = values
        except Exception as e:
            print(f"Error loading config: {e}")
            print("Using default configuration")
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            config[section][key] = value
    if os.environ.get("PORT", "").strip().isdigit():
        config["server"]["port"] = int(os.environ["PORT"])
    return config

def load_credentials(config):
    spotify_cfg = config.get("spotify", {})
    credentials = Credentials(
        client_id=spotify_cfg.get("client_id", ""),
        client_secret=spotify_cfg.get("client_secret", ""),
        refresh_token=spotify_cfg.get("refresh_token", ""),
        redirect_uri=spotify_cfg.get("redirect_uri", DEFAULT_CONFIG["spotify"]["redirect_uri"])
    )
    if not all([credentials.client_id, credentials.client_secret, credentials.refresh_token]):
        logging.getLogger('SpotifyCard').warning("⚠️ Spotify credentials incomplete, card requests will fail until they are configured")
    return credentials

def setup_logging(config=None):
    config = config or load_config()
    log_config = config.get("logging", {})
    level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logger = logging.getLogger('SpotifyCard')
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(level)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    log_file = log_config.get("log_file")
    if log_file:
        try:
            max_lines = log_config.get("max_log_lines", 10000)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_lines * 100,
                backupCount=log_config.get("max_backup_files", 5)
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except Exception as e:
            logger.warning(f"Failed to setup file logging: {e}")
    return logger

config = load_config()
credentials = load_credentials(config)


def build_card_model(track, title_text, colors, card_config=None):
    if card_config is None:
        card_config = config.get("card", {})
    song_name = CONTROL_CHARS.sub('', track['song_name'] or '')
    cover_b64 = b64encode(track['cover_image']).decode('ascii')
    mime = track.get('cover_mime') or spotify_api.DEFAULT_COVER_MIME
    return {
        'height': card_config.get("height", 450),
        'title_text': title_text,
        'song_name': song_name,
        'viewAnimation': bool(song_name) and len(song_name) > card_config.get("scroll_threshold", 24),
        'artist_name': CONTROL_CHARS.sub('', track['artist_name'] or ''),
        'img': f"data:{mime};base64,{cover_b64}",
        'color1': colors[0],
        'color2': colors[1],
        'color3': colors[2]
    }

def render_card(model):
    """Render the svg card. Needs an application context."""
    return render_template(CARD_TEMPLATE, **model)

def resolve_track(access_token, timeout):
    track = spotify_api.get_currently_playing(access_token, timeout=timeout)
    if track:
        return track, NOW_PLAYING
    track = spotify_api.get_recently_played(access_token, timeout=timeout)
    if track:
        return track, RECENTLY_PLAYED
    raise NoSongDataError("Neither currently playing nor recently played returned a track")

@app.route('/')
def spotify_card():
    logger = logging.getLogger('SpotifyCard')
    try:
        timeout = config.get("network", {}).get("timeout", spotify_api.DEFAULT_TIMEOUT)
        access_token = spotify_api.get_access_token(credentials, timeout=timeout)
        try:
            track, title_text = resolve_track(access_token, timeout)
        except NoSongDataError as e:
            logger.info(f"No song data: {e}")
            return jsonify({"error": "No song data available."}), 404
        card_config = config.get("card", {})
        colors = palette.extract_palette(
            track['cover_image'],
            color_count=card_config.get("palette_size", palette.PALETTE_SIZE),
            quality=card_config.get("palette_quality", palette.PALETTE_QUALITY)
        )
        model = build_card_model(track, title_text, colors, card_config)
        svg = render_card(model)
        logger.info(f"🎵 {title_text}: {track['song_name']} - {track['artist_name']}")
        return Response(svg, mimetype='image/svg+xml')
    except (AuthError, PaletteError) as e:
        logger.error(f"Error generating Spotify card: {e}")
        return jsonify({"error": "Error generating Spotify card"}), 500
    except Exception as e:
        logger.exception(f"Unexpected error generating Spotify card: {e}")
        return jsonify({"error": "Error generating Spotify card"}), 500

@app.route('/test')
def hello_world():
    return 'Hello World'

@app.route('/health')
def health():
    return {
        'uptime_seconds': int(time.time() - START_TIME),
        'credentials_configured': all([credentials.client_id, credentials.client_secret, credentials.refresh_token])
    }

def main():
    logger = setup_logging(config)
    server_cfg = config.get("server", {})
    port = server_cfg.get("port", 8000)
    logger.info(f"✅ Server is running on port {port}")
    app.run(host=server_cfg.get("host", "0.0.0.0"), port=port, threaded=True)
