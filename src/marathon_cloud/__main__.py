"""
Marathon Cloud CLI entry point.

Usage:
    python -m marathon_cloud run --app app.apk --testapp test.apk --platform android
    python -m marathon_cloud download RUN_ID -o ./allure
"""

from marathon_cloud.cli import main

if __name__ == "__main__":
    main()
