from routes import comments, dashboard, healthcheck, likes, playlists, subscriptions, tweets, users, videos

ROUTERS = [
    healthcheck.router,
    users.router,
    tweets.router,
    subscriptions.router,
    videos.router,
    comments.router,
    likes.router,
    playlists.router,
    dashboard.router,
]
