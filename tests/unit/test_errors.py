"""Unit tests for crowbar_init.errors module."""

from crowbar_init.errors import (
    BootstrapError,
    Busy,
    ConfigError,
    DatabaseError,
    ProxyError,
    ReadinessError,
    ReloadInconsistent,
    ServiceError,
    TransportError,
    ValidationError,
)


class TestBootstrapError:
    """Tests for BootstrapError and its subclasses."""

    def test_to_dict_minimal(self):
        error = BootstrapError(message="boom")
        assert error.to_dict() == {"error": "boom"}
        assert str(error) == "boom"

    def test_to_dict_with_step_and_data(self):
        error = ServiceError(step="start-service", data={"service": "crowbar.service"})
        assert error.to_dict() == {
            "error": "Service control failed",
            "step": "start-service",
            "data": {"service": "crowbar.service"},
        }

    def test_database_error_points_at_chef_log(self):
        assert "/var/log/chef/solo.log" in DatabaseError().message

    def test_codes(self):
        """Test busy is a conflict, everything else a server error."""
        assert Busy().code == 409
        assert ValidationError().code == 500
        assert DatabaseError().code == 500
        assert ReadinessError().code == 500

    def test_hierarchy(self):
        assert isinstance(ReloadInconsistent(), ProxyError)
        for cls in (DatabaseError, ServiceError, ProxyError, TransportError, Busy):
            assert isinstance(cls(), BootstrapError)
            assert isinstance(cls(), Exception)

    def test_can_be_raised(self):
        try:
            raise ProxyError(step="switch-proxy")
        except BootstrapError as e:
            assert e.step == "switch-proxy"


class TestConfigError:
    """Tests for ConfigError."""

    def test_attributes(self):
        error = ConfigError("bad value", path="/etc/crowbar/crowbar-init.yml")
        assert error.message == "bad value"
        assert error.path == "/etc/crowbar/crowbar-init.yml"
        assert str(error) == "bad value"
