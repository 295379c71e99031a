from __future__ import annotations
import os
from spa_booking import create_app

def main() -> None:
    flask_app = create_app()

    # show what routes are actually mounted
    print("\n=== URL MAP ===")
    for r in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
        print(r)
    print("===============\n")

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    # threaded: each live event stream holds a worker for as long as the dashboard is open
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 4000)), debug=debug_enabled, threaded=True)

if __name__ == "__main__":
    main()
