from media_browser.app import main

if __name__ == "__main__":
    main()
