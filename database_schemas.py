# Database schema definitions

USERS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'moderator', 'admin')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
'''

PROFILES_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS profiles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        username TEXT NOT NULL,
        display_name TEXT NOT NULL,
        avatar_url TEXT,
        bio TEXT DEFAULT '',
        views INTEGER NOT NULL DEFAULT 0,
        role TEXT NOT NULL DEFAULT 'user',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
'''

CATEGORIES_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT UNIQUE NOT NULL,
        description TEXT
    )
'''

THREADS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS threads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        author_id INTEGER,  -- profiles.id
        category_id INTEGER,
        view_count INTEGER NOT NULL DEFAULT 0,
        is_pinned BOOLEAN NOT NULL DEFAULT 0,
        is_locked BOOLEAN NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (author_id) REFERENCES profiles (id) ON DELETE SET NULL,
        FOREIGN KEY (category_id) REFERENCES categories (id) ON DELETE SET NULL
    )
'''

POSTS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS posts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        content TEXT NOT NULL,
        author_id INTEGER,  -- profiles.id
        thread_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (author_id) REFERENCES profiles (id) ON DELETE SET NULL,
        FOREIGN KEY (thread_id) REFERENCES threads (id) ON DELETE CASCADE
    )
'''

LIKES_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS likes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,  -- profiles.id
        post_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES profiles (id) ON DELETE CASCADE,
        FOREIGN KEY (post_id) REFERENCES posts (id) ON DELETE CASCADE,
        UNIQUE(user_id, post_id)
    )
'''

THREAD_LIKES_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS thread_likes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,  -- profiles.id
        thread_id INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES profiles (id) ON DELETE CASCADE,
        FOREIGN KEY (thread_id) REFERENCES threads (id) ON DELETE CASCADE,
        UNIQUE(user_id, thread_id)
    )
'''

FOLLOWS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS follows (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        follower_id INTEGER NOT NULL,  -- profiles.id
        following_id INTEGER NOT NULL,  -- profiles.id
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (follower_id) REFERENCES profiles (id) ON DELETE CASCADE,
        FOREIGN KEY (following_id) REFERENCES profiles (id) ON DELETE CASCADE,
        UNIQUE(follower_id, following_id)
    )
'''

REPORTS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS reports (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        reporter_id INTEGER NOT NULL,  -- profiles.id
        report_type TEXT NOT NULL CHECK (report_type IN ('thread', 'post', 'profile')),
        reason TEXT NOT NULL,
        description TEXT,
        thread_id INTEGER,
        post_id INTEGER,
        reported_user_id INTEGER,  -- profiles.id
        status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'resolved', 'dismissed')),
        resolved_by INTEGER,
        resolved_at TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (reporter_id) REFERENCES profiles (id) ON DELETE CASCADE,
        FOREIGN KEY (thread_id) REFERENCES threads (id) ON DELETE SET NULL,
        FOREIGN KEY (post_id) REFERENCES posts (id) ON DELETE SET NULL
    )
'''

USER_SETTINGS_TABLE_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS user_settings (
        user_id INTEGER PRIMARY KEY,
        show_likes BOOLEAN NOT NULL DEFAULT 1,
        show_followers BOOLEAN NOT NULL DEFAULT 1,
        show_following BOOLEAN NOT NULL DEFAULT 1,
        show_online_status BOOLEAN NOT NULL DEFAULT 1,
        show_profile_to_guests BOOLEAN NOT NULL DEFAULT 1,
        allow_messages BOOLEAN NOT NULL DEFAULT 1,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
'''

ALL_TABLE_SCHEMAS = [
    USERS_TABLE_SCHEMA,
    PROFILES_TABLE_SCHEMA,
    CATEGORIES_TABLE_SCHEMA,
    THREADS_TABLE_SCHEMA,
    POSTS_TABLE_SCHEMA,
    LIKES_TABLE_SCHEMA,
    THREAD_LIKES_TABLE_SCHEMA,
    FOLLOWS_TABLE_SCHEMA,
    REPORTS_TABLE_SCHEMA,
    USER_SETTINGS_TABLE_SCHEMA,
]

# Column names each table exposes through the query client
TABLE_COLUMNS = {
    "users": {"id", "username", "email", "password_hash", "role", "created_at"},
    "profiles": {"id", "user_id", "username", "display_name", "avatar_url", "bio", "views", "role", "created_at"},
    "categories": {"id", "name", "description"},
    "threads": {"id", "title", "content", "author_id", "category_id", "view_count", "is_pinned",
                "is_locked", "created_at", "updated_at"},
    "posts": {"id", "content", "author_id", "thread_id", "created_at", "updated_at"},
    "likes": {"id", "user_id", "post_id", "created_at"},
    "thread_likes": {"id", "user_id", "thread_id", "created_at"},
    "follows": {"id", "follower_id", "following_id", "created_at"},
    "reports": {"id", "reporter_id", "report_type", "reason", "description", "thread_id", "post_id",
                "reported_user_id", "status", "resolved_by", "resolved_at", "created_at"},
    "user_settings": {"user_id", "show_likes", "show_followers", "show_following", "show_online_status",
                      "show_profile_to_guests", "allow_messages"},
}

DEFAULT_CATEGORIES = [
    ("General", "Anything about games and gaming"),
    ("Reviews", "Game reviews written by the community"),
    ("Guides", "Walkthroughs, tips and builds"),
    ("Esports", "Tournaments, teams and competitive play"),
    ("Hardware", "PCs, consoles and peripherals"),
    ("Off-Topic", "Everything else"),
]
