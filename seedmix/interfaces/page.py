INDEX_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <title>SeedMix</title>
    <meta charset="utf-8">
    <style>
        body { font-family: Arial, sans-serif; text-align: center; padding: 30px; background: #282c34; color: #fff; }
        .track-list { list-style: none; padding: 0; display: flex; flex-wrap: wrap; justify-content: center; }
        .track-card { width: 180px; margin: 10px; }
        .track-card img { width: 160px; height: 160px; object-fit: cover; }
        .track-name { font-weight: bold; margin-top: 6px; }
        .track-artists { font-size: 14px; color: #bbb; }
        .notice { color: #1db954; font-size: 18px; }
        form { display: inline-block; margin: 8px; }
    </style>
</head>
<body>
    <h1>Spotify Recommendations Based on Your Top Tracks</h1>

    {% for message in get_flashed_messages() %}
    <p class="notice">{{ message }}</p>
    {% endfor %}

    {% if not state.is_logged_in %}
    <form action="{{ url_for('login') }}" method="get">
        <button type="submit">Log in to Spotify</button>
    </form>
    {% endif %}

    {% if state.is_logged_in and state.top_tracks %}
    <div>
        <h2>Your Top Tracks</h2>
        <ul class="track-list">
            {% for track in state.top_tracks %}
            <li class="track-card">
                {% if track.image_url %}<img src="{{ track.image_url }}" alt="{{ track.name }}">{% endif %}
                <div class="track-name">{{ track.name }}</div>
                <div class="track-artists">{{ track.artist_line }}</div>
            </li>
            {% endfor %}
        </ul>
    </div>
    {% endif %}

    {% if state.recommendations %}
    <div>
        <h2>Recommended Songs</h2>
        <ul class="track-list">
            {% for song in state.recommendations %}
            <li class="track-card">
                {% if song.image_url %}<img src="{{ song.image_url }}" alt="{{ song.name }}">{% endif %}
                <div class="track-name">{{ song.name }}</div>
                <div class="track-artists">{{ song.artist_line }}</div>
            </li>
            {% endfor %}
        </ul>

        <form action="{{ url_for('create_playlist') }}" method="post">
            <input type="hidden" name="csrf_token" value="{{ csrf_token }}">
            <button type="submit" {% if state.is_creating_playlist %}disabled{% endif %}>
                {{ 'Creating Playlist...' if state.is_creating_playlist else 'Create Playlist' }}
            </button>
        </form>

        <form action="{{ url_for('shuffle') }}" method="post">
            <input type="hidden" name="csrf_token" value="{{ csrf_token }}">
            <button type="submit" {% if state.is_shuffling %}disabled{% endif %}>
                {{ 'Shuffling...' if state.is_shuffling else 'Shuffle' }}
            </button>
        </form>
    </div>
    {% endif %}

    {% if state.is_logged_in and not state.top_tracks %}
    <p>Loading your top tracks...</p>
    {% endif %}
    {% if state.is_logged_in and state.top_tracks and not state.recommendations %}
    <p>Loading recommendations...</p>
    {% endif %}
</body>
</html>
"""
