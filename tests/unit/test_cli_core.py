from visit_planner.cli import parse_args


def test_parse_args_defaults():
    args = parse_args(["plan"])
    assert args.command == "plan"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.business_days is None
    assert args.distance_model is None
    assert args.strict is False


def test_parse_args_schedule_overrides():
    args = parse_args(
        ["plan", "--business-days", "3", "--visits-per-day", "4", "--home", "NR25 8PL", "--distance-model", "prefix"]
    )
    assert args.business_days == 3
    assert args.visits_per_day == 4
    assert args.home == "NR25 8PL"
    assert args.distance_model == "prefix"


def test_parse_args_forget_list():
    args = parse_args(["forget-list", "--list", "Hit List", "--overlay-config-dir", "config/live"])
    assert args.list_name == "Hit List"
    assert args.overlay_config_dir == "config/live"


def test_parse_args_fix_postcode():
    args = parse_args(["fix-postcode", "--pub", "Nowhere Tavern", "--postcode", "NR25 7AA"])
    assert args.pub == "Nowhere Tavern"
    assert args.postcode == "NR25 7AA"
    assert args.defer is False
    assert parse_args(["fix-postcode", "--pub", "p1", "--defer"]).defer is True
