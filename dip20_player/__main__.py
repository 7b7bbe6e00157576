from dip20_player.main import main

if __name__ == "__main__":
    main()  # pylint: disable=no-value-for-parameter
