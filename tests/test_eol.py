import pytest

from vulnscope.eol import debian_eol, main, ubuntu_eol

FOREVER = "time.Date(3000, 1, 1, 23, 59, 59, 0, time.UTC),"


def test_debian_release_without_eol_never_expires():
    got = list(debian_eol(["squeeze,6.0,x,y\n"]))
    assert got == ['"squeeze": ' + FOREVER]


def test_debian_release_with_eol():
    got = list(debian_eol(["7,Wheezy,wheezy,2011-2-6,2013-5-4,2016-4-25\r\n"]))
    assert got == ['"7": time.Date(2016, 4, 25, 23, 59, 59, 0, time.UTC),']


def test_debian_skips_empty_and_wide_lines():
    assert list(debian_eol(["", "\n", "a,b,c,d,e,f,g"])) == []


def test_debian_unparsable_date_gives_zero_date():
    got = list(debian_eol(["8,Jessie,jessie,2013-4-26,2015-4-26,2018-13-40"]))
    assert len(got) == 1
    assert got[0].startswith('"8": time.Date(1, 1, 1, ')


def test_ubuntu_uses_first_word_and_last_column():
    line = "14.04 LTS,Trusty Tahr,trusty,2013-10-17,2014-04-17,2019-04-25"
    got = list(ubuntu_eol([line]))
    assert got == ['"14.04": time.Date(2019, 4, 25, 23, 59, 59, 0, time.UTC),']


def test_ubuntu_blank_name_is_an_error():
    with pytest.raises(ValueError):
        list(ubuntu_eol([",a,b"]))


def test_main_prints_both_sections(tmp_path, capsys):
    (tmp_path / "debian.csv").write_text("squeeze,6.0\n\n", encoding="utf-8")
    (tmp_path / "ubuntu.csv").write_text(
        "14.04 LTS,Trusty Tahr,trusty,2013-10-17,2014-04-17,2019-04-25\n", encoding="utf-8"
    )
    main([str(tmp_path)])
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Debian"
    assert out[1] == '"squeeze": ' + FOREVER
    assert out[2:4] == ["", "Ubuntu"]
    assert out[4].startswith('"14.04": ')
    assert len(out) == 5


def test_main_missing_data_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        main([str(tmp_path)])